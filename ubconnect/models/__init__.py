from ubconnect.database import Base
from ubconnect.models.document import StoredDocument

__all__ = ["Base", "StoredDocument"]
