"""
Indexed-skill notifications
Emails the user who nominated a repository once a skill from it is indexed
"""

import logging
from typing import Optional
from urllib.parse import quote

import requests

from .config import get_resend_api_key, get_resend_from_email, get_site_url

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"

MESSAGES = {
    'en': {
        'subject': 'Your skill has been indexed on SkillHub!',
        'body': (
            "Good news!\n\n"
            "Your skill {name} from {repo} has been successfully indexed on SkillHub.\n"
            "It is now searchable and installable by developers.\n\n"
            "View skill: {url}\n\n"
            "You received this because you submitted an add request on SkillHub."
        ),
    },
    'fa': {
        'subject': 'مهارت شما در SkillHub ایندکس شد!',
        'body': (
            "خبر خوب!\n\n"
            "مهارت {name} از مخزن {repo} با موفقیت در SkillHub ایندکس شد.\n"
            "مهارت شما اکنون قابل جستجو و نصب توسط توسعه‌دهندگان است.\n\n"
            "مشاهده مهارت: {url}\n\n"
            "این ایمیل به دلیل ثبت درخواست افزودن مهارت شما در SkillHub ارسال شده است."
        ),
    },
}


def skill_url(site_url: str, locale: str, skill_id: str) -> str:
    encoded = '/'.join(quote(part, safe='') for part in skill_id.split('/'))
    return f"{site_url.rstrip('/')}/{locale}/skill/{encoded}"


class ResendNotifier:
    """No-op unless an API key is configured"""

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None,
                 site_url: Optional[str] = None, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.from_email = from_email or get_resend_from_email()
        self.site_url = site_url or get_site_url()
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls) -> 'ResendNotifier':
        return cls(api_key=get_resend_api_key())

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def send_indexed_notification(self, address: str, locale: str, details: dict) -> bool:
        """details: skill_id, skill_name, repository_url"""
        if not self.is_configured:
            logger.debug("RESEND_API_KEY not set, skipping notification")
            return False

        locale = locale if locale in MESSAGES else 'en'
        messages = MESSAGES[locale]
        payload = {
            'from': self.from_email,
            'to': [address],
            'subject': messages['subject'],
            'text': messages['body'].format(
                name=details['skill_name'],
                repo=details['repository_url'],
                url=skill_url(self.site_url, locale, details['skill_id']),
            ),
        }

        response = self.session.post(
            RESEND_API_URL,
            json=payload,
            headers={'Authorization': f'Bearer {self.api_key}'},
            timeout=30,
        )
        response.raise_for_status()
        logger.info(f"Sent indexed notification for {details['skill_id']}")
        return True
