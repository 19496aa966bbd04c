"""
In-process fake of the B2 native API, served through httpx.MockTransport.

Implements just enough of the routes used by the session cache and the upload pipeline to test them end to end:
authorization, bucket listing, the large file calls, part uploads and small file uploads.
Every call is recorded, and failures can be injected per route or per part number.
"""

import base64
import hashlib
import itertools
import json
import threading
import time
from dataclasses import dataclass, field
from urllib.parse import unquote

import httpx

AUTHORIZATION_URL = "https://auth.fake-b2.test"
API_URL = "https://api.fake-b2.test"
DOWNLOAD_URL = "https://download.fake-b2.test"
UPLOAD_URL = "https://pod-000.fake-b2.test"

ACCOUNT_ID = "fake-account"
KEY_ID = "fake-key-id"
KEY_SECRET = "fake-key-secret"


@dataclass
class FakeLargeFile:
    file_id: str
    bucket_id: str
    file_name: str
    content_type: str
    file_info: dict
    state: str = "started"
    parts: dict[int, bytes] = field(default_factory=dict)


@dataclass
class InjectedFailure:
    status_code: int
    code: str
    message: str = "injected failure"
    # How many times the failure is returned before requests succeed again, None for always.
    times: int | None = None


class FakeB2Server:
    def __init__(self, recommended_part_size: int = 6, bucket_names: tuple[str, ...] = ("test-bucket",)):
        self.recommended_part_size = recommended_part_size
        self.absolute_minimum_part_size = 1
        self.buckets = {f"bucket-{index}": name for index, name in enumerate(bucket_names)}
        self.large_files: dict[str, FakeLargeFile] = {}
        self.files: dict[str, bytes] = {}

        self.calls: list[str] = []
        self.requests: list[httpx.Request] = []
        self.valid_tokens: set[str] = set()
        self.upload_tokens: set[str] = set()

        # Failure injection
        self.route_failures: dict[str, InjectedFailure] = {}
        self.part_failures: dict[int, InjectedFailure] = {}
        # Part number -> SHA1 the server claims to have received instead of the real one.
        self.misreported_part_sha1s: dict[int, str] = {}
        self.authorization_delay = 0.0
        self.upload_delay = 0.0

        self.in_flight_uploads = 0
        self.max_in_flight_uploads = 0

        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    @property
    def authorization_url(self) -> str:
        return AUTHORIZATION_URL

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def call_count(self, route: str) -> int:
        with self._lock:
            return self.calls.count(route)

    def expire_all_tokens(self) -> None:
        """Make B2 reject every token issued so far with 'expired_auth_token'."""
        with self._lock:
            self.valid_tokens.clear()
            self.upload_tokens.clear()

    def handle(self, request: httpx.Request) -> httpx.Response:
        route = request.url.path.rsplit("/", 1)[-1]
        if request.url.path.startswith("/b2api/v2/b2_upload_part/"):
            route = "b2_upload_part"
        elif request.url.path.startswith("/b2api/v2/b2_upload_file/"):
            route = "b2_upload_file"

        with self._lock:
            self.calls.append(route)
            self.requests.append(request)
            failure = self._take_failure(self.route_failures, route)
        if failure is not None:
            return _error(failure.status_code, failure.code, failure.message)

        handlers = {
            "b2_authorize_account": self._authorize_account,
            "b2_list_buckets": self._list_buckets,
            "b2_start_large_file": self._start_large_file,
            "b2_get_upload_part_url": self._get_upload_part_url,
            "b2_finish_large_file": self._finish_large_file,
            "b2_cancel_large_file": self._cancel_large_file,
            "b2_get_upload_url": self._get_upload_url,
            "b2_upload_part": self._upload_part,
            "b2_upload_file": self._upload_file,
        }
        if route not in handlers:
            return _error(404, "not_found", f"Unknown route {request.url.path}")

        if route in ("b2_upload_part", "b2_upload_file"):
            if request.headers.get("Authorization") not in self.upload_tokens:
                return _error(401, "expired_auth_token", "upload token expired")
        elif route != "b2_authorize_account":
            if request.url.host != httpx.URL(API_URL).host:
                return _error(400, "bad_request", "API calls must go to the apiUrl")
            if request.headers.get("Authorization") not in self.valid_tokens:
                return _error(401, "expired_auth_token", "Authorization token has expired")

        return handlers[route](request)

    @staticmethod
    def _take_failure(failures: dict, key) -> InjectedFailure | None:
        failure = failures.get(key)
        if failure is None:
            return None
        if failure.times is not None:
            failure.times -= 1
            if failure.times <= 0:
                del failures[key]
        return failure

    def _authorize_account(self, request: httpx.Request) -> httpx.Response:
        expected = "Basic " + base64.b64encode(f"{KEY_ID}:{KEY_SECRET}".encode()).decode()
        if request.headers.get("Authorization") != expected:
            return _error(401, "unauthorized", "invalid application key")

        if self.authorization_delay:
            time.sleep(self.authorization_delay)

        with self._lock:
            token = f"account-token-{next(self._ids)}"
            self.valid_tokens.add(token)
        return httpx.Response(
            200,
            json={
                "accountId": ACCOUNT_ID,
                "authorizationToken": token,
                "allowed": {"capabilities": ["listBuckets", "writeFiles"], "bucketId": None, "namePrefix": None},
                "apiUrl": API_URL,
                "downloadUrl": DOWNLOAD_URL,
                "recommendedPartSize": self.recommended_part_size,
                "absoluteMinimumPartSize": self.absolute_minimum_part_size,
                "s3ApiUrl": "https://s3.fake-b2.test",
            },
        )

    def _list_buckets(self, request: httpx.Request) -> httpx.Response:
        body = _json(request)
        buckets = [
            {"accountId": ACCOUNT_ID, "bucketId": bucket_id, "bucketName": name, "bucketType": "allPrivate"}
            for bucket_id, name in self.buckets.items()
            if body.get("bucketName") in (None, name)
        ]
        return httpx.Response(200, json={"buckets": buckets})

    def _start_large_file(self, request: httpx.Request) -> httpx.Response:
        body = _json(request)
        if body["bucketId"] not in self.buckets:
            return _error(400, "bad_request", f"Invalid bucketId: {body['bucketId']}")

        with self._lock:
            file_id = f"large-file-{next(self._ids)}"
            large_file = FakeLargeFile(
                file_id=file_id,
                bucket_id=body["bucketId"],
                file_name=body["fileName"],
                content_type=body["contentType"],
                file_info=body.get("fileInfo", {}),
            )
            self.large_files[file_id] = large_file
        return httpx.Response(200, json=self._file_json(large_file, action="start"))

    def _get_upload_part_url(self, request: httpx.Request) -> httpx.Response:
        body = _json(request)
        if body["fileId"] not in self.large_files:
            return _error(400, "bad_request", "unknown fileId")
        with self._lock:
            token = f"upload-token-{next(self._ids)}"
            self.upload_tokens.add(token)
        return httpx.Response(
            200,
            json={
                "fileId": body["fileId"],
                "uploadUrl": f"{UPLOAD_URL}/b2api/v2/b2_upload_part/{body['fileId']}",
                "authorizationToken": token,
            },
        )

    def _upload_part(self, request: httpx.Request) -> httpx.Response:
        file_id = request.url.path.rsplit("/", 1)[-1]
        part_number = int(request.headers["X-Bz-Part-Number"])

        with self._lock:
            self.in_flight_uploads += 1
            self.max_in_flight_uploads = max(self.max_in_flight_uploads, self.in_flight_uploads)
            failure = self._take_failure(self.part_failures, part_number)
        try:
            if self.upload_delay:
                time.sleep(self.upload_delay)
            if failure is not None:
                return _error(failure.status_code, failure.code, failure.message)

            data = request.content
            sha1 = hashlib.sha1(data).hexdigest()
            if sha1 != request.headers["X-Bz-Content-Sha1"]:
                return _error(400, "bad_request", "Sha1 did not match data received")

            with self._lock:
                large_file = self.large_files.get(file_id)
                if large_file is None or large_file.state != "started":
                    return _error(400, "bad_request", f"No active upload for: {file_id}")
                large_file.parts[part_number] = data

            return httpx.Response(
                200,
                json={
                    "fileId": file_id,
                    "partNumber": part_number,
                    "contentLength": len(data),
                    "contentSha1": self.misreported_part_sha1s.get(part_number, sha1),
                    "uploadTimestamp": 1_700_000_000_000,
                },
            )
        finally:
            with self._lock:
                self.in_flight_uploads -= 1

    def _finish_large_file(self, request: httpx.Request) -> httpx.Response:
        body = _json(request)
        with self._lock:
            large_file = self.large_files.get(body["fileId"])
            if large_file is None or large_file.state != "started":
                return _error(400, "bad_request", f"No active upload for: {body['fileId']}")

            part_numbers = sorted(large_file.parts)
            if part_numbers != list(range(1, len(part_numbers) + 1)) or len(part_numbers) < 2:
                return _error(400, "bad_request", "large files must have at least 2 contiguous parts")

            expected_sha1s = [hashlib.sha1(large_file.parts[number]).hexdigest() for number in part_numbers]
            if body["partSha1Array"] != expected_sha1s:
                return _error(400, "bad_request", "Part sha1 array does not match the uploaded parts")

            large_file.state = "finished"
            content = b"".join(large_file.parts[number] for number in part_numbers)
            self.files[large_file.file_name] = content
        return httpx.Response(
            200, json=self._file_json(large_file, action="upload", content_length=len(content), content_sha1="none")
        )

    def _cancel_large_file(self, request: httpx.Request) -> httpx.Response:
        body = _json(request)
        with self._lock:
            large_file = self.large_files.get(body["fileId"])
            if large_file is None or large_file.state != "started":
                return _error(400, "bad_request", f"No active upload for: {body['fileId']}")
            large_file.state = "cancelled"
            large_file.parts.clear()
        return httpx.Response(
            200,
            json={
                "fileId": large_file.file_id,
                "accountId": ACCOUNT_ID,
                "bucketId": large_file.bucket_id,
                "fileName": large_file.file_name,
            },
        )

    def _get_upload_url(self, request: httpx.Request) -> httpx.Response:
        body = _json(request)
        if body["bucketId"] not in self.buckets:
            return _error(400, "bad_request", f"Invalid bucketId: {body['bucketId']}")
        with self._lock:
            token = f"upload-token-{next(self._ids)}"
            self.upload_tokens.add(token)
        return httpx.Response(
            200,
            json={
                "bucketId": body["bucketId"],
                "uploadUrl": f"{UPLOAD_URL}/b2api/v2/b2_upload_file/{body['bucketId']}",
                "authorizationToken": token,
            },
        )

    def _upload_file(self, request: httpx.Request) -> httpx.Response:
        bucket_id = request.url.path.rsplit("/", 1)[-1]
        data = request.content
        sha1 = hashlib.sha1(data).hexdigest()
        if sha1 != request.headers["X-Bz-Content-Sha1"]:
            return _error(400, "bad_request", "Sha1 did not match data received")

        file_name = unquote(request.headers["X-Bz-File-Name"])
        with self._lock:
            self.files[file_name] = data
            file_id = f"file-{next(self._ids)}"
        return httpx.Response(
            200,
            json={
                "fileId": file_id,
                "fileName": file_name,
                "accountId": ACCOUNT_ID,
                "bucketId": bucket_id,
                "action": "upload",
                "contentType": "application/octet-stream",
                "contentLength": len(data),
                "contentSha1": sha1,
                "fileInfo": {"src_last_modified_millis": request.headers["X-Bz-Info-src_last_modified_millis"]},
                "uploadTimestamp": 1_700_000_000_000,
            },
        )

    @staticmethod
    def _file_json(large_file: FakeLargeFile, action: str, content_length: int = 0, content_sha1: str = "none"):
        return {
            "fileId": large_file.file_id,
            "fileName": large_file.file_name,
            "accountId": ACCOUNT_ID,
            "bucketId": large_file.bucket_id,
            "action": action,
            "contentType": large_file.content_type,
            "contentLength": content_length,
            "contentSha1": content_sha1,
            "fileInfo": large_file.file_info,
            "uploadTimestamp": 1_700_000_000_000,
        }


def _json(request: httpx.Request) -> dict:
    return json.loads(request.content or b"{}")


def _error(status_code: int, code: str, message: str) -> httpx.Response:
    return httpx.Response(status_code, json={"status": status_code, "code": code, "message": message})
