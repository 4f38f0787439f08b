"""Background jobs: send queued emails via AWS SES and purge stale OAuth states"""
import os
import sys
import time

import schedule

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.email_service import EmailService
from services.oauth_service import purge_expired_states
from utils.logger import log_info, log_error


def process_email_queue():
    """Process pending emails from the queue"""
    service = EmailService()
    sent_count = service.send_queued_emails(limit=int(os.environ.get('EMAIL_BATCH_SIZE', 20)))
    if sent_count:
        log_info(f"[EMAIL] Sent {sent_count} queued emails")
    return sent_count


def cleanup_oauth_states():
    try:
        return purge_expired_states()
    except Exception as e:
        log_error("[OAUTH] Failed to purge expired states", error=e)
        return 0


def setup_email_scheduler():
    """Run the queue every minute and the OAuth cleanup daily until stopped"""
    schedule.every(1).minutes.do(process_email_queue)
    schedule.every().day.at(os.environ.get('OAUTH_CLEANUP_TIME', '03:00')).do(cleanup_oauth_states)

    while True:
        schedule.run_pending()
        time.sleep(30)


if __name__ == "__main__":
    if os.environ.get('RUN_ONCE'):
        process_email_queue()
        cleanup_oauth_states()
    else:
        setup_email_scheduler()
