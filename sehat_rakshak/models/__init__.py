# Import every model so relationship() strings resolve and Base.metadata is complete.
from sehat_rakshak.models.hospital import Hospital
from sehat_rakshak.models.user import AppRole, User
from sehat_rakshak.models.doctor import Doctor
from sehat_rakshak.models.patient import Gender, Patient
from sehat_rakshak.models.prescription import Medication, Prescription
from sehat_rakshak.models.notification import Notification, NotificationChannel, NotificationStatus
from sehat_rakshak.models.ai_interaction import AIInteraction
