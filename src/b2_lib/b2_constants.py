"""
Constants that the session cache and the upload pipeline need to agree on.
"""

ONE_MiB = 1024 * 1024

DEFAULT_AUTHORIZATION_URL = "https://api.backblazeb2.com"

AUTHORIZE_ACCOUNT_ROUTE = "b2api/v2/b2_authorize_account"
LIST_BUCKETS_ROUTE = "b2api/v2/b2_list_buckets"
GET_UPLOAD_URL_ROUTE = "b2api/v2/b2_get_upload_url"
GET_UPLOAD_PART_URL_ROUTE = "b2api/v2/b2_get_upload_part_url"
START_LARGE_FILE_ROUTE = "b2api/v2/b2_start_large_file"
FINISH_LARGE_FILE_ROUTE = "b2api/v2/b2_finish_large_file"
CANCEL_LARGE_FILE_ROUTE = "b2api/v2/b2_cancel_large_file"

# Key the session is stored under in the session cache.
SESSION_CACHE_KEY = "session"

# The authorization response carries no expiry, the token is valid for at most 24 hours.
DEFAULT_TOKEN_TTL_SECONDS = 24 * 60 * 60

# B2 enforces a maximum of 10_000 parts per large file.
MAX_PART_COUNT = 10_000

# B2 rejects a large file with fewer than 2 parts, anything smaller goes up in one request.
MIN_LARGE_FILE_PART_COUNT = 2

DEFAULT_UPLOAD_WORKERS = 4
DEFAULT_PART_RETRY_ATTEMPTS = 3

# Lets the server detect the content type from the file name.
AUTO_CONTENT_TYPE = "b2/x-auto"

LAST_MODIFIED_FILE_INFO_KEY = "src_last_modified_millis"
LARGE_FILE_SHA1_FILE_INFO_KEY = "large_file_sha1"
