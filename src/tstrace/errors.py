from typing import Optional


class TraceError(Exception):
    """Base class for analysis errors surfaced by tstrace."""


class NoProjectError(TraceError):
    def __init__(self, message: str = "No workspace folder found. Open a folder or specify rootDir.") -> None:
        super().__init__(message)


class NoMatchingFilesError(TraceError):
    def __init__(self, root_dir: str) -> None:
        self.root_dir = root_dir
        super().__init__(
            "No TypeScript/JavaScript files found in project. Check tsconfig.json "
            f'"include" patterns or ensure *.ts files exist in {root_dir}'
        )


class SymbolNotFoundError(TraceError):
    """Raised by the locator when no declaration matches the requested name."""

    def __init__(self, name: str, scanned_files: int, file_hint: Optional[str] = None) -> None:
        self.name = name
        self.scanned_files = scanned_files
        self.file_hint = file_hint
        super().__init__(
            f"Symbol '{name}' not found in project ({scanned_files} files scanned)."
        )


class NotCallableError(TraceError):
    def __init__(self, name: str, kind: str) -> None:
        self.name = name
        self.kind = kind
        super().__init__(f"'{name}' is a {kind}, not a function or method.")


class NotATypeError(TraceError):
    def __init__(self, name: str, kind: str, expected: str = "a class or interface") -> None:
        self.name = name
        self.kind = kind
        super().__init__(f"'{name}' is a {kind}, not {expected}.")
