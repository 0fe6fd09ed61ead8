"""Object storage integrations."""

from tryon.services.storage.base import ObjectStorage, StoredObject
from tryon.services.storage.supabase_storage import SupabaseStorage

__all__ = ["ObjectStorage", "StoredObject", "SupabaseStorage"]
