# storefront/db/base_class.py

from sqlalchemy.orm import declarative_base

# Single declarative base; every model inherits from it.
Base = declarative_base()
