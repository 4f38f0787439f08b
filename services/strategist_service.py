"""AI business strategist: prompt building, OpenAI chat completions, history and text-to-speech"""
import os
import re
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from openai import OpenAI

from config.database import get_supabase
from services.business_context_service import get_business_context
from services.language_service import detect_language, get_language_name
from utils.logger import log_info, log_error, log_warning

OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
OPENAI_CHAT_MODEL = os.getenv('OPENAI_CHAT_MODEL', 'gpt-4o-mini')
OPENAI_TTS_MODEL = os.getenv('OPENAI_TTS_MODEL', 'tts-1')

HISTORY_LIMIT = 20
CHAT_HISTORY_PAGE_SIZE = 50
MAX_MESSAGE_LENGTH = 4000
MAX_TTS_LENGTH = 4096
FREQUENCY_PENALTY = 0.3
FALLBACK_REPLY = "I'm here to help! What's your biggest business challenge right now?"

TTS_VOICES = ['alloy', 'echo', 'fable', 'onyx', 'nova', 'shimmer']
DEFAULT_VOICE = 'alloy'

PERSONALITIES = {
    'strategic': {
        'tone': "Be strategic, forward-thinking, and focused on long-term vision. Ask probing questions about goals, "
                "market positioning, and competitive advantages. Think like a business strategist.",
        'approach': "Focus on high-level planning, strategic positioning, and business transformation. "
                    "Use frameworks and strategic thinking.",
    },
    'analytical': {
        'tone': "Be data-driven, logical, and detail-oriented. Ask for specific metrics, analyze patterns, and provide "
                "evidence-based recommendations. Think like a business analyst.",
        'approach': "Focus on numbers, KPIs, processes, and systematic analysis. "
                    "Request data and provide structured solutions.",
    },
    'creative': {
        'tone': "Be innovative, inspiring, and think outside the box. Encourage brainstorming, creative solutions, "
                "and new approaches. Think like a creative consultant.",
        'approach': "Focus on innovation, creative problem-solving, and fresh perspectives. "
                    "Suggest unconventional approaches and encourage experimentation.",
    },
    'supportive': {
        'tone': "Be encouraging, empathetic, and understanding. Focus on emotional intelligence, team dynamics, and "
                "personal growth. Think like a supportive coach.",
        'approach': "Focus on motivation, team building, work-life balance, and personal development. "
                    "Be warm and encouraging while providing guidance.",
    },
}
DEFAULT_PERSONALITY = 'strategic'

NAME_PATTERN = re.compile(r"(?:i'm|i am|my name is|call me|name's)\s+([a-zA-Z]+)", re.IGNORECASE)

SEARCH_TRIGGERS = [re.compile(pattern, re.IGNORECASE) for pattern in [
    r'latest.{0,20}(trends?|news|updates?|information|data)',
    r'current.{0,20}(market|industry|statistics?|data|pricing|costs?|trends?)',
    r'recent.{0,20}(developments?|changes?|updates?|research)',
    r'what.{0,10}(is|are).{0,10}happening.{0,20}(now|today|currently)',
    r'search.{0,10}(for|about)',
    r'20\d\d.{0,20}(trends?|data|statistics?|market|pricing)',
    r'up.{0,5}to.{0,5}date',
    r'what.{0,10}(are|is).{0,20}(prices?|costs?|rates?)',
    r"(current|today'?s?|this\s+year'?s?).{0,20}(prices?|market|statistics?)",
    r'tell\s+me\s+about.{0,20}(current|latest|recent)',
    r'research.{0,20}(current|latest)',
    r'what.{0,10}(companies|businesses).{0,10}are.{0,10}doing',
    r'industry.{0,20}(analysis|report|insights?)',
    r'market.{0,20}(research|analysis|data)',
    r'competitor.{0,20}(analysis|research)',
    r'business.{0,20}(trends?|news)',
    r'current.{0,10}(AI|artificial intelligence|tech|technology).{0,10}tre[an]ds?',
    r'tre[an]ds?.{0,10}(for|in).{0,10}20\d\d',
    r'(current|who\s+is\s+the).{0,20}(president|prime minister|leader)',
]]

METADATA_PREFIX = re.compile(r'^\[Lang:([^,\]]+)(?:,Personality:([^\]]+))?\]\s*')
REPLY_TAGS = [
    re.compile(r'^\[Lang:[^\]]+,Personality:[^\]]+\]\s*'),
    re.compile(r'^\[Lang:[^\]]+\]\s*'),
    re.compile(r'^\[I responded in [^\]]+\]\s*'),
]


class StrategistUnavailable(Exception):
    """The language model could not produce a reply"""


def _get_client() -> OpenAI:
    if not OPENAI_API_KEY:
        raise StrategistUnavailable("OpenAI API key not configured")
    return OpenAI(api_key=OPENAI_API_KEY)


def extract_user_name(message: str, history: Optional[List[Dict[str, Any]]] = None) -> Optional[str]:
    """Find a self-introduction in the current message, then in earlier messages"""
    match = NAME_PATTERN.search(message or '')
    if match:
        return match.group(1)

    for entry in history or []:
        match = NAME_PATTERN.search(entry.get('message') or '')
        if match:
            return match.group(1)
    return None


def needs_web_search(message: str) -> bool:
    """True when the message asks for live or current information"""
    return any(trigger.search(message or '') for trigger in SEARCH_TRIGGERS)


def is_first_message(message: str, is_fresh_start: bool = False) -> bool:
    lowered = (message or '').lower()
    return bool(is_fresh_start) or 'hello' in lowered or 'started a conversation' in lowered


def parse_metadata(text: str) -> Dict[str, Any]:
    """Split a stored '[Lang:xx,Personality:yy] text' entry into its parts"""
    text = text or ''
    match = METADATA_PREFIX.match(text)
    if not match:
        return {'language': 'en', 'personality': None, 'text': text}
    return {'language': match.group(1), 'personality': match.group(2), 'text': text[match.end():]}


def clean_reply(reply: str) -> str:
    for tag in REPLY_TAGS:
        reply = tag.sub('', reply, count=1)
    return reply.strip()


def _business_context_section(context: Optional[Dict[str, Any]]) -> str:
    if not context:
        return ''

    bottlenecks = context.get('top_bottlenecks') or []
    if isinstance(bottlenecks, list):
        bottlenecks = ', '.join(bottlenecks)

    business_name = context.get('business_name') or "User's Business"
    lines = [
        f"BUSINESS CONTEXT - {business_name}:",
        f"INDUSTRY: {context.get('industry') or 'unknown'}",
        f"BUSINESS MODEL: {context.get('business_model') or 'unknown'}",
        f"REVENUE: {context.get('current_revenue') or 'unknown'}",
        f"TEAM SIZE: {context.get('team_size') or 'unknown'}",
        f"GROWTH STAGE: {context.get('growth_stage') or 'unknown'}",
        f"TARGET MARKET: {context.get('target_market') or 'unknown'}",
        f"UNIQUE VALUE PROP: {context.get('unique_value_proposition') or 'unknown'}",
        f"TOP BOTTLENECKS: {bottlenecks or 'unknown'}",
        f"BIGGEST CHALLENGE: {context.get('biggest_challenge') or 'unknown'}",
        f"PRIMARY GOAL: {context.get('primary_goal') or 'unknown'}",
        f"TIMEFRAME: {context.get('timeframe') or 'unknown'}",
        f"WEBSITE: {context.get('website_url') or 'unknown'}",
        "",
        "You have their business questionnaire above. Reference their situation, industry and challenges "
        "and don't ask questions it already answers.",
    ]
    return '\n'.join(lines)


def _language_section(language: str) -> str:
    name = get_language_name(language)
    if language == 'en':
        return "LANGUAGE: The user is communicating in English. Respond in English."
    return (f"LANGUAGE: The user is communicating in {name}. Respond in {name} "
            f"and adapt your business advice to be culturally relevant.\n\n"
            "TRANSLATION MEMORY: History entries tagged \"[User spoke in xx]\" or \"[I responded in xx]\" "
            "tell you which language was used. Use them when asked to translate earlier answers.")


def validate_freedom_score(freedom_score: Any) -> Dict[str, Any]:
    """Check the client-supplied score result before it is used in a prompt"""
    if not isinstance(freedom_score, dict):
        raise ValueError("freedom_score must be an object")

    recommended = freedom_score.get('recommended_order')
    if recommended is not None:
        if not isinstance(recommended, list):
            raise ValueError("freedom_score.recommended_order must be a list")
        for sprint in recommended:
            if not isinstance(sprint, dict) or not isinstance(sprint.get('title'), str):
                raise ValueError("freedom_score.recommended_order entries must have a title")

    module_averages = freedom_score.get('module_averages')
    if module_averages is not None:
        if not isinstance(module_averages, dict):
            raise ValueError("freedom_score.module_averages must be an object")
        for score in module_averages.values():
            if isinstance(score, bool) or not isinstance(score, (int, float)):
                raise ValueError("freedom_score.module_averages values must be numbers")

    return freedom_score


def _top_sprint_title(freedom_score: Dict[str, Any]) -> Optional[str]:
    recommended = freedom_score.get('recommended_order') or []
    return recommended[0].get('title') if recommended else None


def _freedom_score_section(freedom_score: Dict[str, Any]) -> str:
    top_sprint = _top_sprint_title(freedom_score)
    module_averages = freedom_score.get('module_averages') or {}

    lines = ["FREEDOM SCORE DATA YOU HAVE ACCESS TO:",
             f"- Overall Score: {freedom_score.get('percent')}% ({freedom_score.get('total_score')}/60)"]
    if top_sprint:
        lines.append(f"- Top Priority Sprint: \"{top_sprint}\"")
    if module_averages:
        lowest = min(module_averages.items(), key=lambda item: item[1])
        lines.append(f"- Lowest Scoring Area: {lowest[0]} at {lowest[1]}/10")
        lines.append("- All Module Scores: " + ', '.join(f"{m}: {s}/10" for m, s in module_averages.items()))
    if top_sprint:
        lines.append("")
        lines.append(f"The user's #1 ranked sprint is \"{top_sprint}\". Always treat it as their top priority "
                     "and tie specific pains back to it.")
    return '\n'.join(lines)


def build_system_prompt(user_name: Optional[str] = None, freedom_score: Optional[Dict[str, Any]] = None,
                        personality: str = DEFAULT_PERSONALITY, language: str = 'en', first_message: bool = False,
                        has_file_context: bool = False, wants_live_data: bool = False,
                        business_context: Optional[Dict[str, Any]] = None) -> str:
    """Build the system prompt for one turn of the conversation"""
    intro = "You're an AI business strategist built on the Freedom by Design Method."

    if first_message:
        if freedom_score:
            greeting = f"Welcome back, {user_name}!" if user_name else "Hi! I'm your AI strategist."
            return (f"{intro} {greeting} I can see you just completed your Freedom Score diagnostic. "
                    "How can I help you understand your results and next steps? Be warm and welcoming.")
        ask_name = (f"Great to see you again, {user_name}!" if user_name
                    else "First, what's your name? I'd love to personalize our conversation!")
        return (f"{intro} Hi! I'll guide you step-by-step so you can focus on growth while your business runs "
                f"with less of you. {ask_name} What brings you here today? Be warm and welcoming.")

    traits = PERSONALITIES.get(personality, PERSONALITIES[DEFAULT_PERSONALITY])

    if user_name:
        name_usage = (f"The user's name is {user_name}. Use their name naturally, not in every sentence. "
                      "You already know it, so don't ask for it again.")
    else:
        name_usage = "The user hasn't shared their name yet. You can occasionally ask what to call them."

    if has_file_context:
        sections = [
            f"{intro} {name_usage}",
            "The user has uploaded documents and you have the processed content below. "
            "Do not say you cannot view files.",
        ]
        top = _top_sprint_title(freedom_score) if freedom_score else None
        if top:
            sections.append(f"Analyze the content, extract key business insights and pain points, and connect "
                            f"them to their #1 priority \"{top}\" (Freedom Score: {freedom_score.get('percent')}%). "
                            "Give specific, actionable recommendations.")
        else:
            sections.append("Identify their biggest business challenges, the patterns keeping them trapped in "
                            "operations, and recommend specific systems and immediate action items.")
        sections.append("Reference specific content from their documents. Be analytical and direct.")
        sections.append(_language_section(language))
        return '\n\n'.join(sections)

    sections = [
        f"{intro} {name_usage}",
        "CONVERSATION RULES:\n"
        "1. Acknowledge what the user just said before responding\n"
        "2. Reference their specific words or situation\n"
        "3. Connect your advice to their actual situation\n"
        "4. Ask 1-2 clarifying questions only when you need them; when they ask for a plan, give one",
        "RESPONSE STYLE:\n"
        "- Talk like a seasoned business advisor\n"
        "- Use short paragraphs (2-3 sentences max)\n"
        "- Be direct but supportive",
        f"PERSONALITY MODE - {personality.upper() if personality in PERSONALITIES else DEFAULT_PERSONALITY.upper()}:\n"
        f"{traits['tone']}\n{traits['approach']}",
    ]

    if freedom_score:
        sections.append(_freedom_score_section(freedom_score))

    business_section = _business_context_section(business_context)
    if business_section:
        sections.append(business_section)

    if wants_live_data:
        sections.append("LIVE DATA: The user is asking about current events, prices or trends. You do not have "
                        "live web access. Say so briefly, then answer from general knowledge and suggest how they "
                        "can verify the latest figures.")

    sections.append(_language_section(language))
    sections.append(f"Today's date is {datetime.now().strftime('%A, %B %d, %Y')}.")

    return '\n\n'.join(sections)


def select_generation_params(message: str, has_file_context: bool = False, wants_live_data: bool = False,
                             conversation_depth: int = 0) -> Dict[str, Any]:
    """Sampling parameters for the reply, chosen from the shape of the request"""
    lowered = (message or '').lower()
    is_complex = len(message or '') > 200 or '?' in (message or '')
    is_urgent = any(word in lowered for word in ('urgent', 'asap', 'help'))

    if has_file_context:
        temperature, max_tokens, presence = 0.2, 600, 0.1
    elif wants_live_data:
        temperature, max_tokens, presence = 0.4, 450, 0.2
    elif is_complex:
        temperature, max_tokens, presence = 0.5, 400, 0.2
    elif is_urgent:
        temperature, max_tokens, presence = 0.3, 350, 0.4
    elif conversation_depth > 10:
        temperature, max_tokens, presence = 0.7, 320, 0.3
    else:
        temperature, max_tokens, presence = 0.6, 300, 0.3

    return {
        'temperature': temperature,
        'max_tokens': max_tokens,
        'presence_penalty': presence,
        'frequency_penalty': FREQUENCY_PENALTY,
    }


def _load_history(supabase, user_id: str) -> List[Dict[str, Any]]:
    try:
        result = supabase.table('ai_conversations').select('message, response, created_at').eq(
            'user_id', user_id).order('created_at', desc=True).limit(HISTORY_LIMIT).execute()
        return list(reversed(result.data or []))
    except Exception as e:
        log_warning(f"[AI-STRATEGIST] Could not load conversation history: {e}")
        return []


def _history_messages(history: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    messages = []
    for entry in history:
        user_meta = parse_metadata(entry.get('message'))
        assistant_meta = parse_metadata(entry.get('response'))

        user_text = user_meta['text']
        if user_meta['language'] != 'en':
            user_text = f"[User spoke in {user_meta['language']}] {user_text}"
        assistant_text = assistant_meta['text']
        if assistant_meta['language'] != 'en':
            assistant_text = f"[I responded in {assistant_meta['language']}] {assistant_text}"

        messages.append({'role': 'user', 'content': user_text})
        messages.append({'role': 'assistant', 'content': assistant_text})
    return messages


def chat(user_id: str, message: str, freedom_score: Optional[Dict[str, Any]] = None, is_fresh_start: bool = False,
         file_context: Optional[str] = None, user_name: Optional[str] = None,
         personality: str = DEFAULT_PERSONALITY) -> Dict[str, Any]:
    """Answer one chat message and save the exchange"""
    if not message or not message.strip():
        raise ValueError("message is required")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValueError(f"message must be at most {MAX_MESSAGE_LENGTH} characters")
    if personality not in PERSONALITIES:
        raise ValueError(f"personality must be one of: {', '.join(PERSONALITIES)}")
    if freedom_score is not None:
        validate_freedom_score(freedom_score)

    supabase = get_supabase()
    language = detect_language(message)['language']

    history = [] if is_fresh_start else _load_history(supabase, user_id)

    first_message = is_first_message(message, is_fresh_start)
    wants_live_data = needs_web_search(message) and not first_message
    name = user_name or extract_user_name(message, history)

    try:
        business_context = get_business_context(user_id)
    except Exception as e:
        log_warning(f"[AI-STRATEGIST] Could not load business context: {e}")
        business_context = None

    system_prompt = build_system_prompt(
        user_name=name,
        freedom_score=freedom_score,
        personality=personality,
        language=language,
        first_message=first_message,
        has_file_context=bool(file_context),
        wants_live_data=wants_live_data,
        business_context=business_context,
    )

    messages = [{'role': 'system', 'content': system_prompt}]
    if file_context:
        messages.append({
            'role': 'system',
            'content': f"DOCUMENT CONTEXT: The user has provided the following documents for analysis:\n\n"
                       f"{file_context}\n\nAnalyze this content in relation to their business challenges.",
        })
    messages.extend(_history_messages(history))
    messages.append({'role': 'user', 'content': message})

    params = select_generation_params(message, bool(file_context), wants_live_data, len(history))
    log_info(f"[AI-STRATEGIST] {len(messages)} messages, language={language}, personality={personality}, "
             f"temperature={params['temperature']}, max_tokens={params['max_tokens']}")

    client = _get_client()
    try:
        completion = client.chat.completions.create(model=OPENAI_CHAT_MODEL, messages=messages, **params)
    except Exception as e:
        log_error("[AI-STRATEGIST] OpenAI API error", error=e)
        raise StrategistUnavailable("AI service temporarily unavailable") from e

    reply = clean_reply(completion.choices[0].message.content or '') or FALLBACK_REPLY

    conversation_id = f"{user_id}-{int(time.time() * 1000)}" if is_fresh_start else user_id
    try:
        supabase.table('ai_conversations').insert({
            'user_id': conversation_id,
            'message': f"[Lang:{language}] {message}",
            'response': f"[Lang:{language},Personality:{personality}] {reply}",
            'freedom_score': freedom_score,
        }).execute()
    except Exception as e:
        log_error("[AI-STRATEGIST] Error saving conversation", error=e)

    return {'reply': reply, 'language': language, 'personality': personality}


def _thread_filter(user_id: str) -> str:
    # main thread plus fresh-start threads stored as <user_id>-<ms>
    return f"user_id.eq.{user_id},user_id.like.{user_id}-%"


def get_chat_history(user_id: str, limit: int = CHAT_HISTORY_PAGE_SIZE) -> List[Dict[str, Any]]:
    """Saved exchanges, oldest first, with the metadata tags split out"""
    supabase = get_supabase()
    rows = supabase.table('ai_conversations').select('*').or_(_thread_filter(user_id)).order(
        'created_at', desc=True).limit(limit).execute().data or []

    history = []
    for row in reversed(rows):
        user_meta = parse_metadata(row.get('message'))
        assistant_meta = parse_metadata(row.get('response'))
        history.append({
            'id': row.get('id'),
            'message': user_meta['text'],
            'response': assistant_meta['text'],
            'language': user_meta['language'],
            'personality': assistant_meta['personality'],
            'created_at': row.get('created_at'),
        })
    return history


def clear_chat_history(user_id: str) -> int:
    supabase = get_supabase()
    result = supabase.table('ai_conversations').delete().or_(_thread_filter(user_id)).execute()
    deleted = len(result.data or [])
    log_info(f"[AI-STRATEGIST] Cleared {deleted} conversation entries for {user_id}")
    return deleted


def text_to_speech(text: str, voice: str = DEFAULT_VOICE) -> bytes:
    """Render text to MP3 audio"""
    if not text or not text.strip():
        raise ValueError("text is required")
    if len(text) > MAX_TTS_LENGTH:
        raise ValueError(f"text must be at most {MAX_TTS_LENGTH} characters")

    voice = voice or DEFAULT_VOICE
    if voice not in TTS_VOICES:
        raise ValueError(f"voice must be one of: {', '.join(TTS_VOICES)}")

    client = _get_client()
    try:
        response = client.audio.speech.create(model=OPENAI_TTS_MODEL, voice=voice, input=text)
    except Exception as e:
        log_error("[AI-STRATEGIST] Text-to-speech failed", error=e)
        raise StrategistUnavailable("Text-to-speech service temporarily unavailable") from e

    return response.content
