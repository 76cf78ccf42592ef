#!/usr/bin/env python3
"""
Arena PLM API Client

Single point of authenticated communication with the Arena REST backend.

Handles:
- session header + JSON payloads on every call
- HTTP status -> exception taxonomy (401 / 400 / 409 / other)
- one retry after a 401 when a fresh session can be obtained
- limit/offset pagination (page size 400)
- ordered fallback across workspace-dependent quality endpoints
- client-side substring search over full listings
"""

import json
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import requests

from arena_slides.core.config import get_config
from arena_slides.core.datashapes import (
    ImageAttachment,
    ProbeResult,
    Record,
    RecordType,
    Session,
    utc_now_iso,
)
from arena_slides.core.exceptions import (
    ArenaAPIError,
    AuthExpiredError,
    ConflictError,
    FeatureUnavailableError,
    NetworkOrParseError,
    NotLoggedInError,
    ValidationError,
)
from arena_slides.core.logging_utils import ArenaLogger
from arena_slides.plm.normalizer import (
    extract_results,
    first_of,
    first_present,
    normalize_record,
)
from arena_slides.settings.credential_store import CredentialStore

plm_logger = ArenaLogger("arena_slides.plm")

SESSION_HEADER = "arena_session_id"
IMAGE_FORMATS = {"png", "jpg", "jpeg", "gif"}

QUALITY_GUIDANCE = (
    "Quality processes may not be enabled for your workspace, or your account "
    "lacks permission to view them. Ask your Arena administrator to enable "
    "Quality, or search items and changes instead."
)

# Listing/detail endpoints per record type; quality is probed separately
_TYPE_ENDPOINTS = {
    RecordType.ITEM: "/items",
    RecordType.CHANGE: "/changes",
    RecordType.REQUEST: "/requests",
}


class ArenaClient:
    """Authenticated REST wrapper around the Arena PLM backend"""

    def __init__(self,
                 credentials: CredentialStore,
                 config=None,
                 http_session: Optional[requests.Session] = None,
                 password_provider: Optional[Callable[[], Optional[str]]] = None):
        """
        Args:
            credentials: Where the session token lives
            config: Config class (defaults to get_config())
            http_session: requests.Session (injectable for tests)
            password_provider: Callable returning the password for a silent
                re-login after a 401. Passwords are never stored, so without
                one a 401 is terminal.
        """
        self.credentials = credentials
        self.config = config or get_config()
        self.http = http_session or requests.Session()
        self.password_provider = password_provider

        self.base_url = self.config.ARENA_API_BASE_URL.rstrip('/')
        self.page_size = self.config.ARENA_PAGE_SIZE
        self.max_pages = self.config.ARENA_MAX_PAGES
        self.timeout = self.config.ARENA_REQUEST_TIMEOUT
        self.quality_paths = list(self.config.ARENA_QUALITY_PATHS)

    # =========================================================================
    # LOW-LEVEL HTTP
    # =========================================================================

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _headers(self, token: Optional[str]) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers[SESSION_HEADER] = token
        return headers

    def _send(self, method: str, endpoint: str, token: Optional[str],
              payload: Any = None, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """Issue one HTTP call; transport failures become NetworkOrParseError."""
        try:
            return self.http.request(
                method.upper(),
                self._url(endpoint),
                headers=self._headers(token),
                data=json.dumps(payload) if payload is not None else None,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            plm_logger.log_warning("REQUEST_FAILED", f"{method.upper()} {endpoint} failed", {"error": str(e)})
            raise NetworkOrParseError(f"Could not reach Arena ({method.upper()} {endpoint}): {e}") from e

    @staticmethod
    def _first_validation_message(response: requests.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        errors = first_present(body, "errors", default=[])
        if isinstance(errors, list):
            for error in errors:
                message = first_present(error, "message")
                if message:
                    return str(message)
        message = first_present(body, "message")
        return str(message) if message else None

    def _raise_for_status(self, response: requests.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        body = response.text or ""
        if status == 401:
            raise AuthExpiredError(body=body)
        if status == 400:
            raise ValidationError(self._first_validation_message(response) or "Arena rejected the request as invalid.", body)
        if status == 409:
            raise ConflictError(body)
        raise ArenaAPIError(status, body)

    @staticmethod
    def _parse_json(response: requests.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise NetworkOrParseError(f"Arena returned a non-JSON response ({response.status_code})") from e

    def request(self, endpoint: str, method: str = "GET", payload: Any = None,
                params: Optional[Dict[str, Any]] = None, expect_json: bool = True) -> Any:
        """
        Authenticated request with retry-once on session expiry.

        Args:
            endpoint: Path below the API base, e.g. "/items"
            method: HTTP verb
            payload: JSON-serializable body
            params: Query parameters
            expect_json: False returns the raw bytes (file downloads)

        Returns:
            Parsed JSON body as-is, or bytes when expect_json is False

        Raises:
            NotLoggedInError, AuthExpiredError, ValidationError, ConflictError,
            ArenaAPIError, NetworkOrParseError
        """
        token = self.credentials.get_session_token()
        if not token:
            raise NotLoggedInError()

        response = self._send(method, endpoint, token, payload, params)

        if response.status_code == 401:
            plm_logger.log_warning("SESSION_EXPIRED", f"401 on {method.upper()} {endpoint}, invalidating session")
            self.credentials.invalidate_session_token()
            new_token = self._obtain_fresh_session()
            if not new_token:
                raise AuthExpiredError(body=response.text or "")
            response = self._send(method, endpoint, new_token, payload, params)
            if response.status_code == 401:
                self.credentials.invalidate_session_token()

        self._raise_for_status(response)
        plm_logger.log_debug("REQUEST_OK", f"{method.upper()} {endpoint}", {"status_code": response.status_code})

        if not expect_json:
            return response.content
        return self._parse_json(response)

    def _obtain_fresh_session(self) -> Optional[str]:
        """Re-login with stored email/workspace; needs a password provider."""
        email = self.credentials.get_email()
        if not email or self.password_provider is None:
            plm_logger.log_info("RELOGIN_SKIPPED", "No password available for silent re-login")
            return None
        password = self.password_provider()
        if not password:
            return None
        try:
            session = self.login(email, password, self.credentials.get_workspace_id() or None)
        except (AuthExpiredError, ValidationError, NetworkOrParseError, ArenaAPIError) as e:
            plm_logger.log_warning("RELOGIN_FAILED", "Silent re-login failed", {"error": str(e)})
            return None
        return session.session_token

    # =========================================================================
    # SESSION LIFECYCLE
    # =========================================================================

    def login(self, email: str, password: str, workspace_id: Optional[str] = None) -> Session:
        """POST /login and persist the resulting session (never the password)."""
        payload: Dict[str, Any] = {"email": email, "password": password}
        if workspace_id:
            payload["workspaceId"] = int(workspace_id) if str(workspace_id).isdigit() else workspace_id

        response = self._send("POST", "/login", None, payload)
        if response.status_code == 401:
            raise AuthExpiredError("Login failed: check your email, password and workspace.", response.text or "")
        self._raise_for_status(response)
        body = self._parse_json(response)

        token = first_present(body, "arenaSessionId")
        if not token:
            raise NetworkOrParseError("Arena login response did not contain a session id")

        session = Session(
            session_token=str(token),
            user_email=email,
            workspace_id=str(first_present(body, "workspaceId", default=workspace_id or "") or ""),
            created_at=utc_now_iso(),
        )
        self.credentials.save_session(session)
        plm_logger.log_info("LOGIN_OK", "Logged in to Arena", {
            "email": email,
            "workspace_id": session.workspace_id,
            "workspace_name": first_present(body, "workspaceName", default=""),
        })
        return session

    def logout(self) -> None:
        """Best-effort PUT /logout, then always clear the stored session."""
        token = self.credentials.get_session_token()
        try:
            if token:
                response = self._send("PUT", "/logout", token)
                if response.status_code >= 400:
                    plm_logger.log_info("LOGOUT_IGNORED", f"Logout returned {response.status_code}")
        except NetworkOrParseError as e:
            plm_logger.log_warning("LOGOUT_FAILED", "Could not reach Arena to log out", {"error": str(e)})
        finally:
            self.credentials.clear_session()

    def validate_session(self) -> bool:
        """
        Authoritative live check of the stored session.

        Returns False (and drops the token) on 401/403. Does not retry.
        """
        token = self.credentials.get_session_token()
        if not token:
            return False
        response = self._send("GET", "/items", token, params={"limit": 1, "offset": 0})
        if response.status_code in (401, 403):
            self.credentials.invalidate_session_token()
            return False
        self._raise_for_status(response)
        return True

    # =========================================================================
    # PAGINATION
    # =========================================================================

    def _paginate(self, endpoint: str, params: Optional[Dict[str, Any]] = None,
                  first_envelope: Any = None) -> Iterator[Dict[str, Any]]:
        """
        Yield raw objects page by page until a short or empty page.

        Args:
            endpoint: Listing endpoint
            params: Extra query parameters
            first_envelope: Already-fetched offset-0 page (from endpoint probing)
        """
        offset = 0
        pages = 0
        while True:
            if pages == 0 and first_envelope is not None:
                envelope = first_envelope
            else:
                page_params = dict(params or {})
                page_params.update({"limit": self.page_size, "offset": offset})
                envelope = self.request(endpoint, params=page_params)

            results = extract_results(envelope)
            yield from results
            pages += 1

            if len(results) < self.page_size:
                break
            if self.max_pages and pages >= self.max_pages:
                plm_logger.log_warning("PAGINATION_CAPPED", f"Stopped {endpoint} after {pages} pages", {
                    "page_size": self.page_size,
                    "max_pages": self.max_pages,
                })
                break
            offset += self.page_size

    # =========================================================================
    # ITEMS / CHANGES / REQUESTS
    # =========================================================================

    def iter_items(self) -> Iterator[Record]:
        """Lazy variant of list_items for very large workspaces."""
        for raw in self._paginate("/items"):
            yield normalize_record(raw, RecordType.ITEM)

    def list_items(self) -> List[Record]:
        return list(self.iter_items())

    def get_item(self, guid: str) -> Record:
        data = self.request(f"/items/{guid}", params={"responseview": "full"})
        return normalize_record(data, RecordType.ITEM)

    def list_changes(self) -> List[Record]:
        return [normalize_record(raw, RecordType.CHANGE) for raw in self._paginate("/changes")]

    def get_change(self, guid: str) -> Record:
        data = self.request(f"/changes/{guid}", params={"responseview": "full"})
        return normalize_record(data, RecordType.CHANGE)

    def list_requests(self) -> List[Record]:
        return [normalize_record(raw, RecordType.REQUEST) for raw in self._paginate("/requests")]

    def get_request(self, guid: str) -> Record:
        data = self.request(f"/requests/{guid}", params={"responseview": "full"})
        return normalize_record(data, RecordType.REQUEST)

    def sample_raw(self, record_type: RecordType) -> Optional[Dict[str, Any]]:
        """Full-view payload of one live record of this type, or None if there are none."""
        if record_type == RecordType.QUALITY:
            probe = self.probe_endpoints(params={"limit": 1, "offset": 0})
            if not probe.found:
                raise FeatureUnavailableError("Quality records", QUALITY_GUIDANCE)
            results = extract_results(probe.data)
            if not results:
                return None
            guid = first_present(results[0], "guid")
            detail = self.probe_endpoints(suffix=f"/{guid}", params={"responseview": "full"})
            return detail.data if detail.found else results[0]

        endpoint = _TYPE_ENDPOINTS[record_type]
        results = extract_results(self.request(endpoint, params={"limit": 1, "offset": 0}))
        if not results:
            return None
        guid = first_present(results[0], "guid")
        return self.request(f"{endpoint}/{guid}", params={"responseview": "full"})

    # =========================================================================
    # QUALITY (ENDPOINT PROBING)
    # =========================================================================

    def probe_endpoints(self, suffix: str = "", params: Optional[Dict[str, Any]] = None,
                        candidates: Optional[List[str]] = None) -> ProbeResult:
        """
        Try each candidate path in order and return the first success.

        Always starts from the first candidate. Session problems are not a
        reason to try the next path and propagate immediately.
        """
        attempted: List[str] = []
        last_status = None
        for base in candidates or self.quality_paths:
            path = f"{base.rstrip('/')}{suffix}"
            attempted.append(path)
            try:
                data = self.request(path, params=params)
            except (AuthExpiredError, NotLoggedInError):
                raise
            except ArenaAPIError as e:
                last_status = e.status_code
                plm_logger.log_info("PROBE_MISS", f"{path} returned {e.status_code}")
                continue
            except NetworkOrParseError as e:
                plm_logger.log_info("PROBE_MISS", f"{path} failed", {"error": str(e)})
                continue
            return ProbeResult(found=True, path=path, data=data, status_code=200, attempted=attempted)
        return ProbeResult(found=False, status_code=last_status, attempted=attempted)

    def list_quality_records(self) -> List[Record]:
        probe = self.probe_endpoints(params={"limit": self.page_size, "offset": 0})
        if not probe.found:
            raise FeatureUnavailableError("Quality records", QUALITY_GUIDANCE)
        return [
            normalize_record(raw, RecordType.QUALITY)
            for raw in self._paginate(probe.path, first_envelope=probe.data)
        ]

    def get_quality_record(self, guid: str) -> Record:
        probe = self.probe_endpoints(suffix=f"/{guid}", params={"responseview": "full"})
        if not probe.found:
            raise FeatureUnavailableError("Quality records", QUALITY_GUIDANCE)
        return normalize_record(probe.data, RecordType.QUALITY)

    # =========================================================================
    # DISPATCH & SEARCH
    # =========================================================================

    def list_records(self, record_type: RecordType) -> List[Record]:
        if record_type == RecordType.ITEM:
            return self.list_items()
        if record_type == RecordType.CHANGE:
            return self.list_changes()
        if record_type == RecordType.REQUEST:
            return self.list_requests()
        return self.list_quality_records()

    def get_record(self, guid: str, record_type: RecordType) -> Record:
        if record_type == RecordType.ITEM:
            return self.get_item(guid)
        if record_type == RecordType.CHANGE:
            return self.get_change(guid)
        if record_type == RecordType.REQUEST:
            return self.get_request(guid)
        return self.get_quality_record(guid)

    def search_records(self, term: str, record_type: RecordType = RecordType.ITEM) -> List[Record]:
        """
        Case-insensitive substring match on name, number and description.
        Fetches the full listing once; no server-side filtering.
        """
        records = self.list_records(record_type)
        needle = (term or "").strip().lower()
        if not needle:
            return records
        return [
            record for record in records
            if needle in record.name.lower()
            or needle in record.number.lower()
            or needle in record.description.lower()
        ]

    def search_text(self, term: str, record_type: RecordType = RecordType.ITEM) -> List[Record]:
        """Generic text search over each full serialized record."""
        records = self.list_records(record_type)
        needle = (term or "").strip().lower()
        if not needle:
            return records
        return [
            record for record in records
            if needle in json.dumps(record.raw, default=str).lower()
        ]

    def find_record_by_number(self, number: str, record_type: RecordType) -> Optional[Record]:
        """Exact (case-insensitive) number lookup; used by legacy slide refresh."""
        wanted = (number or "").strip().lower()
        if not wanted:
            return None
        for record in self.search_records(number, record_type):
            if record.number.lower() == wanted:
                return record
        return None

    def find_item_by_number(self, number: str) -> Optional[Record]:
        return self.find_record_by_number(number, RecordType.ITEM)

    # =========================================================================
    # FILES
    # =========================================================================

    def list_item_files(self, item_guid: str) -> List[Dict[str, Any]]:
        return extract_results(self.request(f"/items/{item_guid}/files"))

    def download_file_content(self, item_guid: str, file_guid: str) -> bytes:
        return self.request(f"/items/{item_guid}/files/{file_guid}/content", expect_json=False)

    @staticmethod
    def _image_files(associations: List[Dict[str, Any]]) -> Iterator[Tuple[Dict[str, Any], str, str]]:
        """(file_info, name, format) for each image attachment, in listing order."""
        for association in associations:
            file_info = first_present(association, "file") or association
            name = str(first_of(file_info, "name", "title", default="") or "")
            file_format = str(first_present(file_info, "format", default="") or "").lower().lstrip('.')
            if not file_format and '.' in name:
                file_format = name.rsplit('.', 1)[-1].lower()
            if file_format in IMAGE_FORMATS:
                yield file_info, name, file_format

    def image_file_names(self, item_guid: str) -> List[str]:
        """Names of an item's image attachments, without downloading them."""
        return [name for _, name, _ in self._image_files(self.list_item_files(item_guid))]

    def get_first_image(self, item_guid: str) -> Optional[ImageAttachment]:
        """
        First attached png/jpg/jpeg/gif file of an item, downloaded.

        Returns None when the item has no image attachment. Download errors
        propagate; callers decide whether to carry on without the image.
        """
        for file_info, name, file_format in self._image_files(self.list_item_files(item_guid)):
            file_guid = first_present(file_info, "guid")
            if not file_guid:
                raise NetworkOrParseError(f"Image attachment '{name}' has no file guid to download")
            content = self.download_file_content(item_guid, str(file_guid))
            if not content:
                raise NetworkOrParseError(f"Image attachment '{name}' downloaded empty")
            return ImageAttachment(name=name or f"{file_guid}.{file_format}", content=content, file_format=file_format)
        return None

    # =========================================================================
    # WORKING REVISION
    # =========================================================================

    def get_working_revision(self, item_guid: str) -> Optional[Record]:
        """The item's WORKING revision, if one exists."""
        revisions = extract_results(self.request(f"/items/{item_guid}/revisions"))
        for revision in revisions:
            status = first_present(revision, "status")
            if isinstance(status, dict):
                status = first_of(status, "name", "id")
            if str(status or "").upper() == "WORKING":
                return normalize_record(revision, RecordType.ITEM)
        return None

    def update_item(self, item_guid: str, payload: Dict[str, Any]) -> Record:
        """PUT changes onto an item's working revision. 409 -> ConflictError."""
        data = self.request(f"/items/{item_guid}", method="PUT", payload=payload)
        return normalize_record(data, RecordType.ITEM)
