from erp_files.models.client import Client
from erp_files.models.file import File

__all__ = ["Client", "File"]
