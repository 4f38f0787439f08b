"""Language detection for chat messages.

Common-word scoring for the six languages the strategist answers in, then
Unicode script ranges for everything else, then English.
"""
import re
import string
from typing import Dict, Any

LANGUAGE_NAMES = {
    'en': 'English', 'es': 'Spanish', 'fr': 'French', 'pt': 'Portuguese',
    'de': 'German', 'it': 'Italian', 'ru': 'Russian', 'ja': 'Japanese',
    'ko': 'Korean', 'zh': 'Chinese', 'ar': 'Arabic', 'hi': 'Hindi',
    'th': 'Thai', 'he': 'Hebrew', 'bn': 'Bengali', 'ta': 'Tamil',
    'te': 'Telugu', 'kn': 'Kannada', 'ml': 'Malayalam', 'gu': 'Gujarati',
    'pa': 'Punjabi', 'si': 'Sinhala', 'my': 'Myanmar', 'km': 'Khmer',
    'lo': 'Lao', 'ka': 'Georgian', 'hy': 'Armenian', 'am': 'Amharic',
    'el': 'Greek',
}

COMMON_WORDS = {
    'en': {
        'the', 'and', 'that', 'have', 'for', 'not', 'with', 'you', 'this', 'but', 'his', 'from',
        'they', 'she', 'her', 'been', 'than', 'its', 'who', 'oil', 'use', 'word', 'which', 'their',
        'said', 'each', 'what', 'will', 'can', 'about', 'if', 'up', 'out', 'many', 'time', 'very',
        'when', 'much', 'some', 'these', 'know', 'take', 'get', 'see', 'him', 'year', 'my', 'me',
        'go', 'come', 'could', 'now', 'over', 'think', 'also', 'your', 'work', 'life', 'only',
        'new', 'would', 'there', 'way', 'may', 'say', 'do', 'how', 'after', 'first', 'well',
        'water', 'long', 'little', 'where', 'right', 'through', 'back', 'good', 'woman', 'help',
        'because', 'business', 'should', 'here',
    },
    'es': {
        'que', 'para', 'con', 'por', 'como', 'está', 'del', 'las', 'los', 'una', 'todo', 'bien',
        'muy', 'más', 'este', 'esta', 'tiene', 'hacer', 'ser', 'también', 'ahora', 'aquí', 'donde',
        'cuando', 'pero', 'porque', 'desde', 'hasta', 'durante', 'sobre', 'entre', 'hacia',
        'el', 'la', 'de', 'y', 'un', 'es', 'se', 'te', 'lo', 'le', 'da', 'su', 'son', 'mi',
        'negocio', 'sí', 'hola', 'gracias', 'español', 'habla', 'hablar', 'dice', 'dije', 'año',
        'años', 'día', 'días', 'casa', 'trabajo', 'persona', 'personas', 'mundo', 'vida', 'tiempo',
        'manera', 'vez', 'lugar', 'estado', 'país', 'parte', 'caso', 'gobierno', 'grupo', 'mano',
        'derecho', 'sistema', 'programa', 'cuestión', 'partido', 'aunque', 'sino', 'tampoco',
        'jamás', 'nunca', 'siempre', 'quizás', 'tal', 'cual', 'quien', 'quienes',
    },
    'fr': {
        'le', 'de', 'et', 'à', 'un', 'il', 'être', 'en', 'avoir', 'que', 'pour', 'dans', 'ce', 'son',
        'une', 'sur', 'avec', 'ne', 'se', 'pas', 'tout', 'comme', 'mon', 'entreprise', 'la', 'du',
        'des', 'les', 'au', 'aux', 'je', 'tu', 'nous', 'vous', 'ils', 'elle', 'mes', 'tes', 'ses',
        'nos', 'vos', 'leurs', 'cette', 'ces', 'où', 'quand', 'comment', 'pourquoi', 'qui', 'quoi',
        'dont', 'si', 'très', 'bien', 'plus', 'moins', 'aussi', 'encore', 'toujours', 'déjà', 'ici',
        'là', 'maintenant', 'aujourd', 'demain', 'hier', 'bonjour', 'merci', 'salut', 'oui', 'non',
        'peut', 'faire', 'voir', 'aller', 'dire', 'donner', 'prendre', 'venir', 'savoir', 'vouloir',
        'pouvoir', 'falloir', 'devoir',
    },
    'pt': {
        'o', 'de', 'e', 'do', 'a', 'em', 'um', 'para', 'com', 'não', 'uma', 'os', 'no', 'se', 'na',
        'por', 'mais', 'as', 'dos', 'como', 'mas', 'ao', 'ele', 'das', 'à', 'seu', 'sua', 'negócio',
        'da', 'que', 'eu', 'você', 'nós', 'eles', 'elas', 'meu', 'minha', 'seus', 'suas', 'nosso',
        'nossa', 'este', 'esta', 'esse', 'essa', 'aquele', 'aquela', 'muito', 'bem', 'também', 'já',
        'só', 'ainda', 'sempre', 'nunca', 'aqui', 'ali', 'lá', 'hoje', 'ontem', 'amanhã', 'agora',
        'então', 'quando', 'onde', 'porque', 'sim', 'olá', 'obrigado', 'tchau', 'pode', 'fazer',
        'ser', 'ter', 'estar', 'ir', 'vir', 'dar', 'ver', 'saber', 'querer', 'poder', 'dever',
    },
    'de': {
        'der', 'die', 'und', 'in', 'den', 'von', 'zu', 'das', 'mit', 'sich', 'des', 'auf', 'für',
        'ist', 'im', 'dem', 'nicht', 'ein', 'eine', 'als', 'auch', 'es', 'an', 'werden', 'aus', 'er',
        'hat', 'dass', 'sie', 'nach', 'bei', 'einer', 'um', 'am', 'sind', 'noch', 'wie', 'einem',
        'über', 'einen', 'so', 'bis', 'diese', 'wenn', 'sein', 'ich', 'war', 'ja', 'haben', 'oder',
        'was', 'wir', 'du', 'ihr', 'mein', 'dein', 'unser', 'euer', 'hallo', 'danke', 'bitte', 'nein',
    },
    'it': {
        'di', 'a', 'da', 'in', 'con', 'su', 'per', 'tra', 'fra', 'io', 'tu', 'lui', 'lei', 'noi',
        'voi', 'loro', 'mio', 'tuo', 'suo', 'nostro', 'vostro', 'questo', 'quello', 'qui', 'qua',
        'là', 'dove', 'come', 'quando', 'perché', 'che', 'chi', 'cosa', 'quanto', 'quale', 'molto',
        'poco', 'tutto', 'niente', 'sempre', 'mai', 'oggi', 'ieri', 'domani', 'ora', 'prima', 'dopo',
        'sopra', 'sotto', 'davanti', 'dietro', 'dentro', 'fuori', 'ciao', 'grazie', 'prego', 'sì',
        'no', 'bene', 'male', 'grande', 'piccolo', 'nuovo', 'vecchio',
    },
}

# Checked in order; kana before Han so Japanese is not read as Chinese
SCRIPT_PATTERNS = [
    ('he', re.compile(r'[֐-׿]')),
    ('ar', re.compile(r'[؀-ۿ]')),
    ('hi', re.compile(r'[ऀ-ॿ]')),
    ('bn', re.compile(r'[ঀ-৿]')),
    ('pa', re.compile(r'[਀-੿]')),
    ('gu', re.compile(r'[઀-૿]')),
    ('ta', re.compile(r'[஀-௿]')),
    ('te', re.compile(r'[ఀ-౿]')),
    ('kn', re.compile(r'[ಀ-೿]')),
    ('ml', re.compile(r'[ഀ-ൿ]')),
    ('si', re.compile(r'[඀-෿]')),
    ('th', re.compile(r'[฀-๿]')),
    ('lo', re.compile(r'[຀-໿]')),
    ('my', re.compile(r'[က-႟]')),
    ('ka', re.compile(r'[Ⴀ-ჿ]')),
    ('am', re.compile(r'[ሀ-፿]')),
    ('km', re.compile(r'[ក-៿]')),
    ('hy', re.compile(r'[԰-֏]')),
    ('el', re.compile(r'[Ͱ-Ͽ]')),
    ('ru', re.compile(r'[Ѐ-ӿ]')),
    ('ja', re.compile(r'[぀-ゟ゠-ヿ]')),
    ('ko', re.compile(r'[가-힯]')),
    ('zh', re.compile(r'[一-鿿]')),
]

WORD_STRIP_CHARS = string.punctuation + '¿¡«»“”‘’…'


def _tokenize(text: str):
    words = (word.strip(WORD_STRIP_CHARS) for word in text.lower().split())
    return [word for word in words if len(word) > 1]


def detect_by_words(text: str) -> Dict[str, Any]:
    words = _tokenize(text)
    total_words = max(len(words), 1)

    scores = {language: 0.0 for language in COMMON_WORDS}
    for word in words:
        weight = 1.5 if len(word) >= 3 else 1.0
        for language, vocabulary in COMMON_WORDS.items():
            if word in vocabulary:
                scores[language] += weight

    if not any(scores.values()):
        return {'language': 'en', 'confidence': 0.0, 'method': 'word-based', 'scores': scores}

    # Later languages win exact ties here; the English tie rule below corrects the common case
    best = None
    for language in COMMON_WORDS:
        if best is None or not scores[best] > scores[language]:
            best = language
    confidence = scores[best] / total_words

    ranked = sorted(scores, key=lambda language: -scores[language])
    top_score = scores[ranked[0]]
    second_score = scores[ranked[1]]

    if confidence < 0.15 and top_score == second_score and scores['en'] > 0:
        best = 'en'
        confidence = scores['en'] / total_words

    if best != 'en' and confidence < 0.1 and top_score <= 2:
        best = 'en'
        confidence = max(scores['en'] / total_words, 0.1)

    return {'language': best, 'confidence': round(confidence, 3), 'method': 'word-based', 'scores': scores}


def detect_by_script(text: str):
    for language, pattern in SCRIPT_PATTERNS:
        if pattern.search(text):
            return language
    return None


def detect_language(text: str) -> Dict[str, Any]:
    """Return {'language', 'confidence', 'method'} for a message"""
    text = text or ''

    word_result = detect_by_words(text)
    if word_result['confidence'] > 0:
        return {k: word_result[k] for k in ('language', 'confidence', 'method')}

    script_language = detect_by_script(text)
    if script_language:
        return {'language': script_language, 'confidence': 0.8, 'method': 'script-based'}

    return {'language': 'en', 'confidence': 0.1, 'method': 'fallback'}


def get_language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code.upper())
