# Re-export Beanie documents
from .user import User
from .profile import UserProfile
from .post import Post, MediaItem, Mention, Engagement, Moderation
from .referral import Referral
from .email_job import EmailJob

DOCUMENT_MODELS = [User, UserProfile, Post, Referral, EmailJob]
