"""
Plain storage commands: single requests, upload and download.
"""

from .basic import auth, delete, get, head, parse_path, post, put
from .download import DirectoryCache, Downloader, download
from .upload import Uploader, upload, walk_files

__all__ = ['auth', 'delete', 'get', 'head', 'parse_path', 'post', 'put',
           'DirectoryCache', 'Downloader', 'download', 'Uploader', 'upload', 'walk_files']
