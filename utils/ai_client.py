"""
AI text-generation client (OpenAI-compatible chat completions endpoint).
Responses are best-effort free text; callers pull structured data out with
extract_json and must cope with None.
"""
import json
import logging
import re
import time
import urllib.error
import urllib.request

from flask import current_app

from utils.errors import UpstreamError

logger = logging.getLogger(__name__)

_ARRAY_RE = re.compile(r'\[[\s\S]*\]')
_OBJECT_RE = re.compile(r'\{[\s\S]*\}')


def generate_text(prompt, system_prompt=None, temperature=0.7, max_tokens=1500):
    """
    Send a prompt and return the completion text.

    Raises:
        UpstreamError: provider not configured, unreachable, or returned no text
    """
    api_key = current_app.config.get('AI_API_KEY')
    if not api_key:
        raise UpstreamError("AI provider is not configured")
    if not prompt or not prompt.strip():
        raise ValueError("prompt must not be empty")

    messages = []
    if system_prompt:
        messages.append({'role': 'system', 'content': system_prompt})
    messages.append({'role': 'user', 'content': prompt})
    payload = {
        'model': current_app.config.get('AI_MODEL'),
        'messages': messages,
        'temperature': temperature,
        'max_tokens': max_tokens,
    }

    req = urllib.request.Request(
        current_app.config['AI_API_URL'],
        data=json.dumps(payload).encode('utf-8'),
        method='POST',
    )
    req.add_header('Authorization', f'Bearer {api_key}')
    req.add_header('Content-Type', 'application/json')

    started = time.monotonic()
    try:
        with urllib.request.urlopen(req, timeout=current_app.config.get('AI_TIMEOUT_SECONDS', 30)) as r:
            data = json.loads(r.read().decode('utf-8'))
    except urllib.error.HTTPError as e:
        logger.error("AI provider returned HTTP %s", e.code)
        raise UpstreamError("AI service is unavailable. Please try again later.") from e
    except (urllib.error.URLError, TimeoutError, ValueError) as e:
        logger.error("AI provider request failed: %s", e)
        raise UpstreamError("AI service is unavailable. Please try again later.") from e

    try:
        text = data['choices'][0]['message']['content']
    except (KeyError, IndexError, TypeError):
        text = None
    if not text:
        raise UpstreamError("AI service returned an empty response")

    logger.info("AI completion: %d chars in %.0fms", len(text), (time.monotonic() - started) * 1000)
    return text


def extract_json(text, kind='array'):
    """
    Pull the first JSON array ('array') or object ('object') out of free text.
    Returns None when nothing parseable of that kind is present.
    """
    if not text:
        return None
    match = (_ARRAY_RE if kind == 'array' else _OBJECT_RE).search(text)
    if not match:
        return None
    try:
        value = json.loads(match.group(0))
    except ValueError:
        return None
    expected = list if kind == 'array' else dict
    return value if isinstance(value, expected) else None
