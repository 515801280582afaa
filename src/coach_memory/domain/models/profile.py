from pydantic import BaseModel


class UserProfile(BaseModel):
    """The parts of an owner's account used to personalize summaries."""

    owner_id: str
    full_name: str | None = None
    email: str | None = None

    @property
    def first_name(self) -> str | None:
        """First word of the stored name, else the local part of the email."""
        if self.full_name and self.full_name.strip():
            return self.full_name.split()[0]
        if self.email:
            local_part = self.email.split("@")[0].strip()
            return local_part or None
        return None
