# app/crud/crud_participant.py
from typing import Optional

from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.participant import Participant
from app.schemas.registration import ParticipantIn


class CRUDParticipant(CRUDBase[Participant, ParticipantIn, ParticipantIn]):
    def get_by_email(self, db: Session, *, email: str) -> Optional[Participant]:
        return db.query(self.model).filter(self.model.email == email.lower()).first()

    def get_or_create(
        self,
        db: Session,
        *,
        obj_in: ParticipantIn,
        user_id: Optional[str] = None,
    ) -> Participant:
        """
        Find a participant by email or create one.

        Existing profile data is kept as is; an account id is attached only
        when the participant has none yet.
        """
        participant = self.get_by_email(db, email=obj_in.email)
        if participant:
            if user_id and not participant.user_id:
                participant.user_id = user_id
                db.add(participant)
                db.flush()
            return participant

        participant = Participant(
            email=obj_in.email.lower(),
            first_name=obj_in.first_name,
            last_name=obj_in.last_name,
            phone_number=obj_in.phone_number,
            date_of_birth=obj_in.date_of_birth,
            address=obj_in.address,
            city=obj_in.city,
            state=obj_in.state,
            zip_code=obj_in.zip_code,
            country=obj_in.country,
            user_id=user_id,
        )
        db.add(participant)
        db.flush()
        return participant


participant = CRUDParticipant(Participant)
