from sqlalchemy import Column, Integer, Text, DateTime, func, ForeignKey
from form_plant.config.database_config import Base


class Submission(Base):
    __tablename__ = "form_submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)

    form_id = Column(
        Integer,
        ForeignKey("forms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # JSON text: {form_data, ip_address, user_agent, referrer, user_id}
    submission_data = Column(Text, nullable=False)

    sent_time = Column(DateTime, server_default=func.now(), nullable=False, index=True)
