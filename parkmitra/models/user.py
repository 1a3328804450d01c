from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from parkmitra.db.session import Base
from parkmitra.models.enums import UserType, db_enum


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    mobile = Column(String)

    user_type = Column(db_enum(UserType, "usertype"), nullable=False, default=UserType.VISITOR)

    # Set for organization members and watchmen
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True)

    organization = relationship("Organization", back_populates="members")

    def is_member_of(self, organization_id: int) -> bool:
        return (
            self.user_type == UserType.ORGANIZATION_MEMBER
            and self.organization_id == organization_id
        )
