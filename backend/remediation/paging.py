"""
Remediation - Bounded Paging

Bulk tools read collections in fixed-size pages, sequentially and in key
order, and write in groups that stay under the store's atomic-batch limit.
"""

import logging
from typing import AsyncIterator, List, Sequence, TypeVar, Optional

from identity.errors import IdentityError, Internal
from identity.repository import PersonRepository, PersonDocument

logger = logging.getLogger(__name__)

T = TypeVar('T')

MAX_PAGE_SIZE = 100
DEFAULT_WRITE_GROUP_SIZE = 400


async def iterate_person_documents(
    persons: PersonRepository,
    page_size: int = MAX_PAGE_SIZE
) -> AsyncIterator[PersonDocument]:
    """
    Yield every person document, one page at a time.

    A page that cannot be read aborts the scan with Internal; per-record
    problems are left to the caller.
    """
    page_size = max(1, min(page_size, MAX_PAGE_SIZE))
    after_key: Optional[str] = None
    page_number = 0

    while True:
        try:
            page = await persons.list_page(after_key, page_size)
        except IdentityError:
            raise
        except Exception as e:
            logger.error(f"Person page {page_number} read failed after {after_key}: {e}", exc_info=True)
            raise Internal("Person collection unavailable", {"after_key": after_key}) from e

        if not page:
            return

        page_number += 1
        logger.debug(f"Person page {page_number}: {len(page)} records after {after_key}")

        for document in page:
            yield document

        if len(page) < page_size:
            return
        after_key = page[-1].record_key


def write_groups(items: Sequence[T], group_size: int = DEFAULT_WRITE_GROUP_SIZE) -> List[List[T]]:
    """Split writes into groups of at most group_size."""
    group_size = max(1, group_size)
    return [list(items[i:i + group_size]) for i in range(0, len(items), group_size)]
