from .admission import Applicant, ApplicantHistory, Pipeline, PipelineStep
from .customer import Customer
from .service import Counter, Service
from .setting import Setting
from .ticket import QueueTicket, SupportTicket, TicketHistory
from .user import User
