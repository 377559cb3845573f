from typing import Dict, Optional


class TypeValidator:
    """
    Decide whether a declared (extension, media type) pair may be stored.

    Only the client-declared Content-Type is checked, the bytes are never
    sniffed, so a renamed file with a matching declaration is accepted.
    """

    def __init__(self, allowed_file_types: Dict[str, str]):
        self._pairs = {ext.lower(): media.lower() for ext, media in allowed_file_types.items()}
        self._media_types = set(self._pairs.values())

    def extension_allowed(self, extension: str) -> bool:
        return extension.lower() in self._pairs

    def media_type_allowed(self, media_type: str) -> bool:
        return media_type.lower() in self._media_types

    def rejection_reason(self, extension: str, media_type: str) -> Optional[str]:
        """
        Return why the pair is rejected, or None when it is accepted.
        """
        if not self.extension_allowed(extension):
            return f"Invalid file extension: {extension or '(none)'}"
        if not self.media_type_allowed(media_type):
            return f"Invalid file type: {media_type}"
        if self._pairs[extension.lower()] != media_type.lower():
            return f"File type {media_type} does not match extension {extension}"
        return None
