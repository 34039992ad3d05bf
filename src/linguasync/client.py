"""Remote namespace client.

``NamespaceClient`` is the call surface the sync engine depends on;
``HttpNamespaceClient`` implements it over the project API with httpx.

Requests go to ``<api.url><project identifier>/<function>`` with the API key
and ``json`` flag as query parameters. Every response is checked for the
service's ``{"success": false, "error": {"code": ..., "message": ...}}``
envelope, whose code and message are surfaced verbatim.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, BinaryIO, Dict, Mapping, Optional, Protocol

import httpx

from .config_schema import LinguasyncConfig
from .errors import RemoteProtocolError
from .file_sets import FileType, UpdateOption
from .observability import log_action, log_debug


class ExportStatus(str, Enum):
    """Server-side build ("export") states."""

    built = "built"
    skipped = "skipped"
    in_progress = "in_progress"
    finished = "finished"
    failed = "failed"


class NamespaceClient(Protocol):
    """Remote calls the engine issues. Paths are slash-delimited and root-relative."""

    def describe_project(self) -> Dict[str, Any]: ...

    def create_directory(self, path: str, as_branch: bool = False) -> None: ...

    def create_file(
        self,
        path: str,
        content: bytes,
        file_type: FileType,
        *,
        branch: Optional[str] = None,
        title: Optional[str] = None,
        export_pattern: Optional[str] = None,
        escape_quotes: Optional[int] = None,
        escape_special_characters: Optional[int] = None,
    ) -> None: ...

    def update_file(
        self,
        path: str,
        content: bytes,
        *,
        update_option: Optional[UpdateOption] = None,
        branch: Optional[str] = None,
        title: Optional[str] = None,
        export_pattern: Optional[str] = None,
        escape_quotes: Optional[int] = None,
        escape_special_characters: Optional[int] = None,
    ) -> None: ...

    def request_export(self, branch: Optional[str], options: Mapping[str, bool]) -> ExportStatus: ...

    def export_status(self, branch: Optional[str]) -> ExportStatus: ...

    def download_archive(self, branch: Optional[str], destination: BinaryIO) -> int: ...

    def get_status(self, language: Optional[str] = None) -> bytes: ...


def _flag(value: bool) -> str:
    return "1" if value else "0"


class HttpNamespaceClient:
    """Project API client over httpx.

    The client owns one ``httpx.Client``; use it as a context manager or call
    ``close()`` when done.
    """

    def __init__(
        self,
        base_url: str,
        project: str,
        api_key: str,
        *,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not project:
            raise ValueError("project identifier is required")
        self.project = project
        self._base = f"{base_url.rstrip('/')}/{project}/"
        self._api_key = api_key
        self._http = httpx.Client(timeout=timeout, transport=transport)

    def __enter__(self) -> "HttpNamespaceClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def _params(self, extra: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"key": self._api_key, "json": ""}
        if extra:
            params.update({k: v for k, v in extra.items() if v is not None})
        return params

    def _url(self, function: str) -> str:
        return self._base + function

    def _send(
        self,
        method: str,
        function: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
        files: Optional[Mapping[str, Any]] = None,
    ) -> httpx.Response:
        log_debug("Remote request", method=method, function=function)
        try:
            response = self._http.request(
                method,
                self._url(function),
                params=self._params(params),
                data={k: v for k, v in (data or {}).items() if v is not None} or None,
                files=files,
            )
        except httpx.RequestError as exc:
            raise RemoteProtocolError(f'Request "{function}" failed: {exc}') from exc
        return response

    def _check(self, function: str, response: httpx.Response) -> Dict[str, Any]:
        """Parse a JSON response and raise on the service's error envelope."""
        try:
            body = response.json()
        except ValueError as exc:
            if response.is_error:
                raise RemoteProtocolError(
                    f'Request "{function}" failed with HTTP {response.status_code}: {response.text}',
                    status_code=response.status_code,
                ) from exc
            raise RemoteProtocolError(
                f'Request "{function}" returned an unparsable body',
                status_code=response.status_code,
            ) from exc

        if not isinstance(body, dict):
            raise RemoteProtocolError(
                f'Request "{function}" returned an unexpected body',
                status_code=response.status_code,
            )
        if body.get("success") is False or response.is_error:
            error = body.get("error") or {}
            code = error.get("code")
            message = error.get("message")
            raise RemoteProtocolError(
                f'Request "{function}" failed: {message or "HTTP " + str(response.status_code)}'
                + (f" (code {code})" if code is not None else ""),
                code=None if code is None else str(code),
                remote_message=message,
                status_code=response.status_code,
            )
        return body

    def _call(self, method: str, function: str, **kwargs: Any) -> Dict[str, Any]:
        return self._check(function, self._send(method, function, **kwargs))

    # ------------------------------------------------------------------ #
    # NamespaceClient
    # ------------------------------------------------------------------ #

    def describe_project(self) -> Dict[str, Any]:
        return self._call("POST", "info")

    def create_directory(self, path: str, as_branch: bool = False) -> None:
        data: Dict[str, Any] = {"name": path}
        if as_branch:
            data["is_branch"] = "1"
        self._call("POST", "add-directory", data=data)
        log_action("create_directory", path=path, branch=as_branch)

    def create_file(
        self,
        path: str,
        content: bytes,
        file_type: FileType,
        *,
        branch: Optional[str] = None,
        title: Optional[str] = None,
        export_pattern: Optional[str] = None,
        escape_quotes: Optional[int] = None,
        escape_special_characters: Optional[int] = None,
    ) -> None:
        data: Dict[str, Any] = {
            "type": file_type.value,
            "branch": branch,
            f"titles[{path}]": title,
            f"export_patterns[{path}]": export_pattern,
            "escape_quotes": escape_quotes,
            "escape_special_characters": escape_special_characters,
        }
        files = {f"files[{path}]": (path.rsplit("/", 1)[-1], content)}
        self._call("POST", "add-file", data=data, files=files)
        log_action("create_file", path=path, branch=branch, type=file_type.value)

    def update_file(
        self,
        path: str,
        content: bytes,
        *,
        update_option: Optional[UpdateOption] = None,
        branch: Optional[str] = None,
        title: Optional[str] = None,
        export_pattern: Optional[str] = None,
        escape_quotes: Optional[int] = None,
        escape_special_characters: Optional[int] = None,
    ) -> None:
        data: Dict[str, Any] = {
            "update_option": update_option.value if update_option else None,
            "branch": branch,
            f"titles[{path}]": title,
            f"export_patterns[{path}]": export_pattern,
            "escape_quotes": escape_quotes,
            "escape_special_characters": escape_special_characters,
        }
        files = {f"files[{path}]": (path.rsplit("/", 1)[-1], content)}
        self._call("POST", "update-file", data=data, files=files)
        log_action("update_file", path=path, branch=branch)

    def request_export(self, branch: Optional[str], options: Mapping[str, bool]) -> ExportStatus:
        params: Dict[str, Any] = {"branch": branch, "async": "1"}
        for name, value in options.items():
            params[name] = _flag(value)
        body = self._call("GET", "export", params=params)
        return self._export_state("export", body)

    def export_status(self, branch: Optional[str]) -> ExportStatus:
        body = self._call("GET", "export-status", params={"branch": branch})
        return self._export_state("export-status", body)

    @staticmethod
    def _export_state(function: str, body: Mapping[str, Any]) -> ExportStatus:
        success = body.get("success")
        raw = success.get("status") if isinstance(success, Mapping) else body.get("status")
        try:
            return ExportStatus(raw)
        except ValueError as exc:
            raise RemoteProtocolError(f'Request "{function}" returned unknown status "{raw}"') from exc

    def download_archive(self, branch: Optional[str], destination: BinaryIO) -> int:
        """Stream the branch's translation archive into ``destination``.

        Returns the number of bytes written.

        Raises:
            RemoteProtocolError: On any failure. HTTP 404 means the branch has
                no files; the status code is kept for callers to tell it apart.
        """
        function = "download/all.zip"
        written = 0
        try:
            with self._http.stream(
                "GET",
                self._url(function),
                params=self._params({"branch": branch}),
            ) as response:
                if response.is_error:
                    response.read()
                    self._check(function, response)
                for chunk in response.iter_bytes():
                    destination.write(chunk)
                    written += len(chunk)
        except httpx.RequestError as exc:
            raise RemoteProtocolError(f'Request "{function}" failed: {exc}') from exc
        log_action("download_archive", branch=branch, bytes=written)
        return written

    def get_status(self, language: Optional[str] = None) -> bytes:
        """Raw translation status document, overall or for one language."""
        function = "language-status" if language else "status"
        response = self._send("POST", function, data={"language": language})
        try:
            body = response.json()
        except ValueError:
            body = None
        # The overall status is a bare list; anything else must pass the envelope check
        if response.is_error or not isinstance(body, list):
            self._check(function, response)
        return response.content


def open_client(config: LinguasyncConfig, api_key: str, transport: Optional[httpx.BaseTransport] = None) -> HttpNamespaceClient:
    """Build an HTTP client from a loaded ``LinguasyncConfig``."""
    return HttpNamespaceClient(
        config.api.url,
        config.project.identifier,
        api_key,
        timeout=config.api.timeout,
        transport=transport,
    )
