"""User-facing validation messages."""

FIELD_LABELS = {
    "files": "Dateien",
    "title": "Titel",
    "summary": "Beschreibung",
    "first_name": "Vorname",
    "last_name": "Nachname",
    "email": "E-Mail-Adresse",
}


def _label(field: str) -> str:
    return FIELD_LABELS.get(field, field)


def required(field: str) -> str:
    return f"{_label(field)} ist erforderlich"


def too_many_files(field: str, max_count: int) -> str:
    return f"Maximal {max_count} {_label(field)} erlaubt"


def file_size_exceeds(field: str, max_size_mb: float) -> str:
    return f"{_label(field)} überschreiten die maximale Größe von {max_size_mb:g}MB"


def single_file_size_exceeds(filename: str, max_size_mb: float) -> str:
    return f"Die Datei \"{filename}\" ist zu groß. Maximale Dateigröße: {max_size_mb:g}MB"


def unsupported_file_type(filename: str, allowed: str) -> str:
    return f"Die Datei \"{filename}\" hat ein nicht unterstütztes Format. Erlaubt sind: {allowed}"


def file_upload_failed(filename: str) -> str:
    return f"Fehler beim Hochladen der Datei \"{filename}\". Bitte versuchen Sie es später erneut."


def files_upload_failed() -> str:
    return "Fehler beim Hochladen der Dateien. Bitte versuchen Sie es später erneut."
