"""服务层能力导出集合。"""

from utp_api.services.authorization import Action, Actor, Decision, decide, ensure_allowed, is_allowed
from utp_api.services.credentials import (
    authenticate,
    get_user,
    increment_upload_count,
    list_users,
    normalize_email,
    register_user,
    remove_user,
    update_profile,
)
from utp_api.services.lifecycle import (
    change_upload_status,
    delete_upload,
    get_history,
    get_upload,
    list_all,
    submit_upload,
    validate_file_descriptor,
)
from utp_api.services.statistics import SystemStats, UserUploadStats, per_user_stats, system_stats
from utp_api.services.storage import persist_upload, purge_rejected_file, release_stored_file
from utp_api.services.uploads import FileDescriptor, UploadDescriptor

__all__ = [
    "Action",
    "Actor",
    "Decision",
    "FileDescriptor",
    "SystemStats",
    "UploadDescriptor",
    "UserUploadStats",
    "authenticate",
    "change_upload_status",
    "decide",
    "delete_upload",
    "ensure_allowed",
    "get_history",
    "get_upload",
    "get_user",
    "increment_upload_count",
    "is_allowed",
    "list_all",
    "list_users",
    "normalize_email",
    "per_user_stats",
    "persist_upload",
    "purge_rejected_file",
    "register_user",
    "release_stored_file",
    "remove_user",
    "submit_upload",
    "system_stats",
    "update_profile",
    "validate_file_descriptor",
]
