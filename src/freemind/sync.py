"""Synchronize the local working set with the remote registry."""

from loguru import logger

from freemind.core.patch.passes import delete_removed, edit_modified, insert_created
from freemind.core.tree.decoder import decode_tree, describe_entry
from freemind.core.working_set import WorkingSet
from freemind.errors import FreemindError
from freemind.protocols import ApiProtocol


class Synchronizer:
    """Reconcile a working set with the server, one full pass per call.

    The working set is only touched once a sync has completed. A failed sync
    leaves every record and flag as it was and the set marked unsynced.
    """

    def __init__(self, working_set: WorkingSet, api: ApiProtocol) -> None:
        self.working_set = working_set
        self._api = api
        # Text of the last uploaded document, None if the last sync uploaded nothing.
        self.last_upload: str | None = None

    def sync(self) -> bool:
        """Run one sync. Returns False (and logs why) if it failed."""
        try:
            self._sync()
        except FreemindError as e:
            logger.error("Sync failed: {}", e)
            self.working_set.mark_unsynced()
            return False
        return True

    def _sync(self) -> None:
        self.last_upload = None
        document = self._api.fetch_all()
        staged = self.working_set.copy()

        deleted = delete_removed(staged, document)
        edited = edit_modified(staged, deleted.text)
        document = edited.text

        # Every id the remote document holds, nested groups included.
        tree = decode_tree(document)
        existing_ids = tree.all_ids()

        new_ids = staged.allocate_missing_ids(existing_ids)
        added = bool(new_ids)
        if added:
            document = insert_created(staged, document, new_ids).text

        if deleted.changed or edited.changed or added:
            status = self._api.update(document)
            self.last_upload = document
            logger.info(
                "Uploaded registry: {} deleted, {} edited, {} added (status {})",
                len(deleted.affected_ids),
                len(edited.affected_ids),
                len(new_ids),
                status,
            )

        merged = staged.merge(tree.records())
        staged.sort_by_due()
        staged.synced = True
        self.working_set.replace(staged)
        logger.info("Synced {} records ({} new from server)", len(self.working_set), merged)

    def fetch_record_by_id(self, record_id: int) -> str:
        """Describe the server's copy of one record, without touching local state.

        Raises:
            TransportError: If the server could not be reached.
        """
        return describe_entry(self._api.fetch_by_id(record_id))
