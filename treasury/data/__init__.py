"""data module"""

from .base import DbAdapter, Operation
from .memory import MemoryAdapter
from .mongodb import MongoDBAdapter
