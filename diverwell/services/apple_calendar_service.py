"""
Apple Calendar Service
iCloud calendars over CalDAV with an app-specific password.
The caldav client is blocking; callers run these helpers in a worker thread.
"""
import logging
from datetime import datetime
from typing import Optional

import caldav
from caldav.lib.error import AuthorizationError

from ..config import APPLE_CALDAV_URL

logger = logging.getLogger(__name__)


def _client(apple_id: str, app_password: str) -> caldav.DAVClient:
    return caldav.DAVClient(url=APPLE_CALDAV_URL, username=apple_id, password=app_password)


def check_credentials(apple_id: str, app_password: str) -> bool:
    """True when iCloud accepts the Apple ID and app-specific password"""
    with _client(apple_id, app_password) as client:
        try:
            client.principal()
        except AuthorizationError:
            logger.warning(f"⚠️ iCloud rejected CalDAV credentials for {apple_id}")
            return False
    return True


def fetch_calendar_data(
    apple_id: str, app_password: str, start: datetime, end: datetime, calendar_url: Optional[str] = None
) -> list[str]:
    """
    Raw iCalendar documents for every event between start and end, recurrences expanded.
    Reads one calendar when calendar_url is given, otherwise every calendar of the account.

    Raises:
        caldav.lib.error.DAVError: the server rejected a request
        OSError: the server could not be reached
    """
    documents = []
    with _client(apple_id, app_password) as client:
        if calendar_url:
            calendars = [client.calendar(url=calendar_url)]
        else:
            calendars = client.principal().calendars()
        for calendar in calendars:
            for event in calendar.search(start=start, end=end, event=True, expand=True):
                documents.append(event.data)
    logger.info(f"📥 Read {len(documents)} iCloud events from {len(calendars)} calendar(s)")
    return documents
