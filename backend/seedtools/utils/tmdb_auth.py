"""
TMDB Authentication Utility Module

TMDB accepts two credential kinds:
    - v3 API Key: 32-character alphanumeric string passed as the api_key query parameter
    - v4 Read Access Token: JWT passed as an Authorization Bearer header

Functions:
    detect_tmdb_credential_type(api_key: str) -> str
    format_tmdb_request(api_key: str) -> tuple[dict, dict]
    mask_credential(value: str) -> str
"""

from typing import Dict, Tuple


def detect_tmdb_credential_type(api_key: str) -> str:
    """
    Detect whether a credential is a v3 API key or a v4 Bearer token.

    Returns:
        'v3' or 'v4'

    Raises:
        ValueError: If the credential is empty or matches neither format

    Example:
        >>> detect_tmdb_credential_type('df667ef7a7f9009def29e0bd78725f3d')
        'v3'
    """
    if not api_key or not isinstance(api_key, str):
        raise ValueError("TMDB API key is not configured")

    api_key = api_key.strip()
    if api_key.startswith('eyJ'):
        return 'v4'
    if len(api_key) == 32 and api_key.isalnum():
        return 'v3'

    raise ValueError(
        "Invalid TMDB credential format. Expected v3 API key (32 alphanumeric) "
        "or v4 Bearer token (JWT)"
    )


def format_tmdb_request(api_key: str) -> Tuple[Dict[str, str], Dict[str, str]]:
    """
    Build (query params, headers) carrying the credential.

    Example:
        >>> format_tmdb_request('df667ef7a7f9009def29e0bd78725f3d')
        ({'api_key': 'df667ef7a7f9009def29e0bd78725f3d'}, {})
    """
    api_key = (api_key or '').strip()
    if detect_tmdb_credential_type(api_key) == 'v3':
        return {'api_key': api_key}, {}
    return {}, {'Authorization': f'Bearer {api_key}'}


def mask_credential(value: str) -> str:
    """Show only the last four characters of a secret, for logs and reprs."""
    if not value:
        return "None"
    return f"***{value[-4:]}"
