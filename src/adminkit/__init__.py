"""adminkit kernel utilities."""

from .blob_codec import BLOB_VERSION, SettingsBlobError, decode_blob, encode_blob
from .naming import handler_name, split_camel, strip_table_prefix, title_from_type

__all__ = [
    "BLOB_VERSION",
    "SettingsBlobError",
    "decode_blob",
    "encode_blob",
    "handler_name",
    "split_camel",
    "strip_table_prefix",
    "title_from_type",
]
