"""Utility functions for daily scores."""

from pathlib import Path
from typing import Optional, Union


def get_user_directory(base_dir: Union[str, Path], user_id: Optional[Union[int, str]] = None, subdir: str = None) -> Path:
    """
    Get the data directory for a user, creating it if it doesn't exist.

    Args:
        base_dir: Base directory path
        user_id: Optional user ID; without it the base directory itself is used
        subdir: Optional subdirectory within the user directory

    Returns:
        Path object for the user directory
    """
    user_dir = Path(base_dir)

    # Every user gets an independent baseline and history
    if user_id is not None:
        user_dir = user_dir / "user" / str(user_id)

    if subdir:
        user_dir = user_dir / subdir

    user_dir.mkdir(parents=True, exist_ok=True)
    return user_dir
