from enum import StrEnum

from tortoise import fields
from tortoise.models import Model


class BookingStatus(StrEnum):
    PENDING = "PENDING"  # just created, awaiting confirmation
    CONFIRMED = "CONFIRMED"  # confirmed, payment captured upstream
    COMPLETED = "COMPLETED"  # stay is over
    CANCELLED = "CANCELLED"  # cancelled by guest or host


class PaymentStatus(StrEnum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    REFUNDED = "REFUNDED"


class AbstractModel(Model):
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:  # type: ignore
        abstract = True


class Booking(AbstractModel):
    id = fields.UUIDField(primary_key=True)

    property_id = fields.UUIDField(db_index=True)
    guest_id = fields.UUIDField(db_index=True)  # the guest who made the booking
    host_id = fields.UUIDField(db_index=True)  # denormalized from properties-ms

    check_in = fields.DateField()
    check_out = fields.DateField()

    total_price = fields.DecimalField(max_digits=10, decimal_places=2)
    status = fields.CharEnumField(BookingStatus, default=BookingStatus.PENDING)
    payment_status = fields.CharEnumField(PaymentStatus, default=PaymentStatus.UNPAID)

    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:  # type: ignore
        table = "bookings"
        ordering = ["-created_at"]
        indexes = (("property_id", "status"),)


class Review(AbstractModel):
    """Guest review of a stay. Owned by the reviews flow, read-only here."""

    id = fields.UUIDField(primary_key=True)
    booking: fields.OneToOneRelation[Booking] = fields.OneToOneField(
        "models.Booking", related_name="review", on_delete=fields.RESTRICT
    )
    property_id = fields.UUIDField()
    guest_id = fields.UUIDField()

    rating_cleanliness = fields.SmallIntField()
    rating_comfort = fields.SmallIntField()
    rating_location = fields.SmallIntField()
    rating_value = fields.SmallIntField()
    comment = fields.TextField(null=True)

    class Meta:  # type: ignore
        table = "reviews"
