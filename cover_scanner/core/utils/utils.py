import cv2
import numpy    as np
import requests

from cover_scanner.core.utils.errors import DecodeFailed
from pathlib                         import Path
from typing                          import Union, Optional

class Utils:
    """
    Core utilities used across the project.
    """

    ALLOWED_FORMATS  = {'.bmp', '.jpg', '.jpeg', '.png', '.tiff', '.webp'}
    DOWNLOAD_TIMEOUT = 10.0

    @classmethod
    def find_root(
        cls,
        marker_file : Union[str, list[str]] = 'pyproject.toml',
        start_path  : Optional[Path] = None
    ) -> Path:
        """Find project root by searching for a marker file.

        Args:
            marker_file : File(s) that indicate project root
            start_path  : Path to start search from (defaults to caller's location)

        Returns:
            Path to project root

        Raises:
            FileNotFoundError: If marker file not found in any parent directory
        """
        markers = [marker_file] if isinstance(marker_file, str) else marker_file
        path    = Path(start_path or Path(__file__)).resolve()

        for parent in [path, *path.parents]:
            if any((parent / marker).exists() for marker in markers):
                return parent

        raise FileNotFoundError(f"Could not find any of {markers}")

    @staticmethod
    def decode_image(image_bytes: bytes | bytearray | None) -> np.ndarray:
        """
        Decodes encoded image bytes (JPEG, PNG, ...) into a BGR image.

        Args:
            image_bytes : Raw encoded image data

        Returns:
            np.ndarray: Decoded image (BGR format)

        Raises:
            DecodeFailed: If the bytes are empty or not a decodable image.
        """
        if not image_bytes:
            raise DecodeFailed("No image data provided")

        buffer = np.frombuffer(bytes(image_bytes), dtype = np.uint8)
        image  = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if image is None:
            raise DecodeFailed(f"Could not decode {len(image_bytes)} bytes as an image")
        return image

    @classmethod
    def load_image(cls, image_path: Path | str) -> np.ndarray:
        """
        Loads an image from the specified file path.

        Raises:
            DecodeFailed: If the file is missing or cannot be decoded.
        """
        image_path = Path(image_path)
        if not image_path.is_file():
            raise DecodeFailed(f"Image not found: {image_path}")
        return cls.decode_image(image_path.read_bytes())

    @classmethod
    def fetch_image_bytes(cls, url: str, timeout: float | None = None) -> bytes:
        """
        Downloads an image by URL and returns its raw bytes.

        Raises:
            DecodeFailed: If the download fails or returns an empty body.
        """
        try:
            response = requests.get(url, timeout = timeout or cls.DOWNLOAD_TIMEOUT, allow_redirects = True)
            response.raise_for_status()
        except requests.RequestException as e:
            raise DecodeFailed(f"Image download failed for {url}: {e}") from e

        if not response.content:
            raise DecodeFailed(f"Image download returned no data for {url}")
        return response.content

    @staticmethod
    def is_url(source: str | Path) -> bool:
        """
        Whether an image source string refers to a remote image.
        """
        return isinstance(source, str) and source.lower().startswith(('http://', 'https://'))

    @classmethod
    def find_image_files(cls, image_dir: Path) -> list[Path]:
        """
        Retrieves a sorted list of image files from a directory.

        Raises:
            FileNotFoundError : If the directory does not exist or holds no images
        """
        if not image_dir.is_dir():
            raise FileNotFoundError(f"Image directory not found: {image_dir}")

        image_files = sorted(
            file for file in image_dir.glob('*')
            if file.is_file() and file.suffix.lower() in cls.ALLOWED_FORMATS
        )

        if not image_files:
            raise FileNotFoundError(f"No image files found in {image_dir}")

        return image_files
