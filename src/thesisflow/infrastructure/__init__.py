"""Infrastructure adapters (SQLAlchemy repositories, S3 storage)"""
