"""Maps user-supplied names to remote document ids."""

import re
from datetime import datetime, timezone
from typing import List, Optional

from common.constants import PROP_INDEX
from common.exceptions import NameResolutionError
from common.logging_config import get_logger
from common.types import ContainerHandle, TypeTag
from drive import query as q
from drive.client import CatalogClient
from drive.models import RemoteDocument

logger = get_logger(__name__)

ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def is_remote_id(token: str) -> bool:
    """True when the token is made only of remote identifier characters."""
    return bool(ID_PATTERN.fullmatch(token))


class NameResolver:
    """
    Resolves names against the stored objects of one container.

    Sheet lookups only consider primary chunks (index 0). When several
    documents match, the most recently modified one wins, then the name.
    """

    def __init__(self, catalog: CatalogClient, container: ContainerHandle):
        self.catalog = catalog
        self.container = container

    def get_id_of_name(self, name: str, require_sheet_type: bool = True) -> Optional[str]:
        """
        Find the id of a stored object whose name contains the given text.

        Args:
            name: Name fragment to search for
            require_sheet_type: Look for stored objects (True) or plain documents (False)

        Returns:
            Matching id, or None when nothing matches
        """
        candidates = self._candidates(name, require_sheet_type)
        if not candidates:
            logger.debug(f"No document in {self.container.name} matches name {name!r}")
            return None

        candidates.sort(key=lambda doc: doc.name)
        candidates.sort(key=lambda doc: doc.modified_time or _EPOCH, reverse=True)
        if len(candidates) > 1:
            logger.debug(
                f"Name {name!r} matched {len(candidates)} documents, picking most recent "
                f"{candidates[0].name} [id={candidates[0].id}]"
            )
        return candidates[0].id

    def _candidates(self, name: str, require_sheet_type: bool) -> List[RemoteDocument]:
        if require_sheet_type:
            type_tag = TypeTag.CHUNK
            predicate = q.all_of(q.name_contains(name), q.has_property(PROP_INDEX, "0"), q.not_trashed())
        else:
            type_tag = TypeTag.DOCUMENT
            predicate = q.all_of(q.name_contains(name), q.not_trashed())

        documents = self.catalog.list_documents(
            parent_id=self.container.id,
            type_tags=(type_tag,),
            query=predicate,
        )
        # Server-side "contains" is token based; re-check as a plain substring
        fragment = name.lower()
        return [
            doc for doc in documents
            if fragment in doc.name.lower() and (not require_sheet_type or doc.is_primary)
        ]

    def resolve(self, token: str, require_sheet_type: bool = True) -> Optional[str]:
        """
        Turn an id-or-name token into an id.

        Tokens that look like remote ids are returned unchanged without any
        lookup. Other tokens are searched by name.

        Returns:
            The id, or None when a name lookup found nothing
        """
        if is_remote_id(token):
            return token
        return self.get_id_of_name(token, require_sheet_type)

    def require(self, token: str, require_sheet_type: bool = True) -> str:
        """
        Like resolve() but fails when nothing matches.

        Raises:
            NameResolutionError: If the name matches no document
        """
        resolved = self.resolve(token, require_sheet_type)
        if resolved is None:
            raise NameResolutionError(f"No stored object matches {token!r}")
        return resolved
