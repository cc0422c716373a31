from sqlalchemy import Column, Integer, String, Text, DateTime, func, JSON
from form_plant.config.database_config import Base


class Form(Base):
    __tablename__ = "forms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False, default="")
    status = Column(String(20), nullable=False, default="draft", index=True)

    # each section is stored as an independent metadata blob
    fields = Column(JSON, nullable=False, default=list)
    html_template = Column(Text, nullable=True)
    settings = Column(JSON, nullable=False, default=dict)
    email_admin = Column(JSON, nullable=False, default=dict)
    email_user = Column(JSON, nullable=False, default=dict)
    spam_protection = Column(JSON, nullable=False, default=dict)

    # status before trashing, restored on untrash
    previous_status = Column(String(20), nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
