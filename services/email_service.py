"""Results emails: rendered to HTML, queued in email_queue and sent through AWS SES"""
import boto3
import html
import os
from datetime import datetime
from typing import Optional, Dict, Any

from config.database import get_supabase
from utils.logger import log_info, log_error
from utils.validation import validate_email


def is_email_enabled() -> bool:
    return os.environ.get('EMAIL_ENABLED', 'false').lower() == 'true'


class EmailService:
    """Queue and deliver transactional emails"""

    def __init__(self):
        self.supabase = get_supabase()

        aws_access_key = os.environ.get('AWS_ACCESS_KEY_ID')
        aws_secret_key = os.environ.get('AWS_SECRET_ACCESS_KEY')
        aws_region = os.environ.get('AWS_REGION', 'us-east-1')
        self.from_email = os.environ.get('SES_FROM_EMAIL', 'coach@freedomsuite.app')
        self.from_name = os.environ.get('SES_FROM_NAME', 'Freedom Suite')
        self.site_url = os.environ.get('FRONTEND_URL', 'http://localhost:3000').rstrip('/')

        if aws_access_key and aws_secret_key:
            self.ses_client = boto3.client(
                'ses',
                region_name=aws_region,
                aws_access_key_id=aws_access_key,
                aws_secret_access_key=aws_secret_key
            )
        else:
            # IAM role / default credential chain
            self.ses_client = boto3.client('ses', region_name=aws_region)

    @property
    def source(self) -> str:
        return f"{self.from_name} <{self.from_email}>"

    def queue_diagnostic_results_email(self, to_email: str, score_result: Dict[str, Any],
                                       user_id: Optional[str] = None) -> Optional[str]:
        """Queue the Freedom Diagnostic results email; returns the queue row id"""
        return self._queue_email(
            to_email=to_email,
            subject='Your Freedom Diagnostic Results Are Ready!',
            template_name='diagnostic_results',
            template_data={
                'percent': score_result.get('percent'),
                'total_score': score_result.get('total_score'),
                'recommended_order': score_result.get('recommended_order', []),
            },
            user_id=user_id,
        )

    def queue_assessment_results_email(self, to_email: str, assessment: Dict[str, Any],
                                       user_id: Optional[str] = None) -> Optional[str]:
        """Queue the freedom assessment summary email"""
        return self._queue_email(
            to_email=to_email,
            subject=f"Your Freedom Score: {assessment['summary']['overall_score']}/100",
            template_name='assessment_results',
            template_data={
                'overall_score': assessment['summary']['overall_score'],
                'archetype': assessment['archetype']['name'],
                'description': assessment['archetype']['description'],
                'recommendations': [r.get('title') for r in assessment.get('recommendations', []) if r.get('title')],
            },
            user_id=user_id,
        )

    def _queue_email(self, to_email: str, subject: str, template_name: str, template_data: Dict,
                     user_id: Optional[str] = None) -> Optional[str]:
        """Queue email for async processing"""
        if not is_email_enabled():
            return None
        if not validate_email(to_email):
            raise ValueError("Invalid email address")

        email_data = {
            'to_email': to_email,
            'subject': subject,
            'body': self.render_template(template_name, template_data),
            'template_name': template_name,
            'template_data': template_data,
            'user_id': user_id,
            'status': 'PENDING',
        }

        result = self.supabase.table('email_queue').insert(email_data).execute()
        email_id = result.data[0]['id'] if result.data else None
        log_info(f"[EMAIL] Queued {template_name} email {email_id}")
        return email_id

    def render_template(self, template_name: str, data: Dict) -> str:
        dashboard_link = f"{self.site_url}/dashboard"

        if template_name == 'diagnostic_results':
            sprints = ''.join(
                f"<li><strong>{html.escape(item['title'])}</strong>: {html.escape(item['why'])}</li>"
                for item in data.get('recommended_order', [])
            )
            return f"""
            <h1>Your Freedom Diagnostic Results</h1>
            <p>Your business health score is <strong>{data.get('percent', 'N/A')}%</strong>
            (total {data.get('total_score', 0)}/60).</p>
            <h3>Your sprint sequence</h3>
            <ol>{sprints}</ol>
            <p><a href="{dashboard_link}">View Your Complete Sprint Plan</a></p>
            """

        if template_name == 'assessment_results':
            sprints = ''.join(f"<li>{html.escape(title)}</li>" for title in data.get('recommendations', []))
            return f"""
            <h1>Your Freedom Score: {data['overall_score']}/100</h1>
            <p><strong>{html.escape(data['archetype'])}</strong>: {html.escape(data['description'])}</p>
            <h3>Recommended sprints</h3>
            <ul>{sprints}</ul>
            <p><a href="{dashboard_link}">Open your dashboard</a></p>
            """

        return "A message from Freedom Suite"

    def send_queued_emails(self, limit: int = 10) -> int:
        """Process queued emails (call from cron/scheduler)"""
        emails = self.supabase.table('email_queue').select('*').eq(
            'status', 'PENDING'
        ).limit(limit).execute()

        sent_count = 0

        for email in emails.data or []:
            try:
                self.ses_client.send_email(
                    Source=self.source,
                    Destination={'ToAddresses': [email['to_email']]},
                    Message={
                        'Subject': {'Data': email['subject']},
                        'Body': {'Html': {'Data': email['body']}}
                    }
                )

                self.supabase.table('email_queue').update({
                    'status': 'SENT',
                    'sent_at': datetime.now().isoformat()
                }).eq('id', email['id']).execute()

                sent_count += 1

            except Exception as e:
                log_error(f"[EMAIL] Failed to send {email['id']}", error=e)
                self.supabase.table('email_queue').update({
                    'status': 'FAILED',
                    'error_message': str(e)
                }).eq('id', email['id']).execute()

        return sent_count
