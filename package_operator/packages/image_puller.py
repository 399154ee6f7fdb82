"""
Image pullers resolve the image reference of a package to the files of its
bundle
"""

# Standard
from typing import Dict, Optional
import abc

# First Party
import alog

# Local
from .. import config
from ..exceptions import ImagePullError, PackageInvalidError
from .loader import load_files

log = alog.use_channel("PULLR")


class ImagePullerBase(abc.ABC):
    """Base class for all image pullers"""

    @abc.abstractmethod
    def pull(self, image: str) -> Dict[str, bytes]:
        """Fetch the bundle files of the given image

        Args:
            image:  str
                The image reference from the package spec

        Returns:
            files:  Dict[str, bytes]
                The bundle files keyed by relative path

        Raises:
            ImagePullError:  If the image cannot be resolved
        """


class FolderImagePuller(ImagePullerBase):
    """Image puller that resolves images to bundle folders on the local disk.
    The operator's own image always resolves to the bundle folder shipped in
    its container.
    """

    def __init__(self, image_folders: Optional[Dict[str, str]] = None):
        """
        Args:
            image_folders:  Optional[Dict[str, str]]
                Mapping from image reference to bundle folder. Defaults to the
                bootstrap.image_folders config.
        """
        if image_folders is None:
            image_folders = dict(config.bootstrap.image_folders or {})
            if config.bootstrap.image:
                image_folders.setdefault(
                    config.bootstrap.image, config.bootstrap.package_folder
                )
        self._image_folders = image_folders

    def pull(self, image: str) -> Dict[str, bytes]:
        folder = self._image_folders.get(image)
        if folder is None:
            raise ImagePullError(f"No bundle folder known for image {image}")
        log.debug("Resolving image %s to %s", image, folder)
        try:
            return load_files(folder)
        except PackageInvalidError as err:
            raise ImagePullError(f"Failed to read bundle of {image}: {err}") from err
