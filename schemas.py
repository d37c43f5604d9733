"""
Database Schemas for the 3D animation portfolio

Each top-level record maps onto one MongoDB collection (see ``database.COLLECTIONS``).
Documents are stored with camelCase field names; Python code uses snake_case
attributes and the models translate between the two.
"""

from datetime import datetime
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


# Enums
class ProjectCategory(str, Enum):
    ANIMATION = "animation"
    CHARACTER_DESIGN = "character-design"
    DIORAMA = "diorama"
    COLLABORATIVE = "collaborative"


class ProjectStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ProjectImageType(str, Enum):
    HERO = "hero"
    CONCEPT = "concept"
    RENDER = "render"
    TURNAROUND = "turnaround"
    DETAIL = "detail"
    PROCESS = "process"
    CHARACTER = "character"
    PROP = "prop"


class ProjectSectionType(str, Enum):
    TEXT = "text"
    IMAGE_GRID = "image-grid"
    VIDEO = "video"
    GALLERY = "gallery"
    FEATURE = "feature"


class GalleryCategory(str, Enum):
    CHARACTER_ART = "character-art"
    CONCEPT_ART = "concept-art"
    FINISHED_PIECES = "finished-pieces"
    SKETCHES = "sketches"
    PERSONAL_WORK = "personal-work"


class SocialPlatform(str, Enum):
    INSTAGRAM = "instagram"
    LINKEDIN = "linkedin"
    TWITTER = "twitter"
    FACEBOOK = "facebook"
    BEHANCE = "behance"
    ARTSTATION = "artstation"


class ImageAlignment(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    FULL = "full"


class InquiryType(str, Enum):
    COLLABORATION = "collaboration"
    COMMISSION = "commission"
    INQUIRY = "inquiry"
    FEEDBACK = "feedback"
    GENERAL = "general"


class SubscriptionSource(str, Enum):
    HOMEPAGE = "homepage"
    GALLERY = "gallery"
    CONTACT = "contact"
    FOOTER = "footer"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# Projects
class ProjectImage(Document):
    url: str
    alt: str = ""
    type: ProjectImageType
    width: Optional[int] = None
    height: Optional[int] = None


class ProjectVideo(Document):
    title: str
    vimeo_id: Optional[str] = None
    youtube_id: Optional[str] = None
    url: Optional[str] = None
    thumbnail_url: Optional[str] = None


class ProjectSection(Document):
    id: str
    title: str
    content: str
    order: int
    type: ProjectSectionType = ProjectSectionType.TEXT
    images: Optional[List[ProjectImage]] = None


class ProjectMetadata(Document):
    technologies: Optional[List[str]] = None
    collaborators: Optional[List[str]] = None
    duration: Optional[str] = None
    credits: Optional[str] = None


class ProjectInput(Document):
    """
    Projects collection schema
    Collection name: "projects"
    """
    title: str
    slug: str = Field(..., description="URL-friendly unique slug")
    tagline: str = ""
    short_description: str = ""
    full_description: str = ""
    category: ProjectCategory
    images: List[ProjectImage] = []
    videos: Optional[List[ProjectVideo]] = None
    sections: Optional[List[ProjectSection]] = None
    metadata: Optional[ProjectMetadata] = None
    featured: bool = False
    display_order: int = 0
    status: ProjectStatus = ProjectStatus.DRAFT


class ProjectUpdate(Document):
    title: Optional[str] = None
    slug: Optional[str] = None
    tagline: Optional[str] = None
    short_description: Optional[str] = None
    full_description: Optional[str] = None
    category: Optional[ProjectCategory] = None
    images: Optional[List[ProjectImage]] = None
    videos: Optional[List[ProjectVideo]] = None
    sections: Optional[List[ProjectSection]] = None
    metadata: Optional[ProjectMetadata] = None
    featured: Optional[bool] = None
    display_order: Optional[int] = None
    status: Optional[ProjectStatus] = None


class Project(ProjectInput):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProjectFilters(Document):
    category: Optional[ProjectCategory] = None
    featured: Optional[bool] = None
    status: Optional[ProjectStatus] = None


# Gallery
class GalleryImage(Document):
    url: str
    alt: str = ""
    width: Optional[int] = None
    height: Optional[int] = None


class GalleryItemInput(Document):
    """
    Gallery collection schema
    Collection name: "gallery"
    """
    title: str
    description: Optional[str] = None
    image: GalleryImage
    category: GalleryCategory
    order: int = 0
    project_id: Optional[str] = Field(None, description="Id of a related project, lookup only")


class GalleryItemUpdate(Document):
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[GalleryImage] = None
    category: Optional[GalleryCategory] = None
    order: Optional[int] = None
    project_id: Optional[str] = None


class GalleryItem(GalleryItemInput):
    id: str
    created_at: Optional[datetime] = None


class GalleryFilters(Document):
    category: Optional[GalleryCategory] = None
    project_id: Optional[str] = None


# Site configuration (singleton "site_config/main")
class SiteInfo(Document):
    site_name: str
    tagline: str = ""
    description: str = ""
    owner_name: str = ""


class ContactInfo(Document):
    email: str
    phone: Optional[str] = None
    location: Optional[str] = None


class SocialLink(Document):
    platform: SocialPlatform
    url: str
    display: bool = True


class NavigationItem(Document):
    label: str
    href: str
    order: int = 0
    children: Optional[List["NavigationItem"]] = None


class Footer(Document):
    copyright: str = ""


class SiteConfigUpdate(Document):
    site_info: Optional[SiteInfo] = None
    contact_info: Optional[ContactInfo] = None
    social_links: Optional[List[SocialLink]] = None
    navigation: Optional[List[NavigationItem]] = None
    footer: Optional[Footer] = None


class SiteConfig(Document):
    id: str
    site_info: Optional[SiteInfo] = None
    contact_info: Optional[ContactInfo] = None
    social_links: List[SocialLink] = []
    navigation: List[NavigationItem] = []
    footer: Footer = Field(default_factory=Footer)
    updated_at: Optional[datetime] = None


# About page (singleton "about/main")
class AboutImage(Document):
    url: str
    alt: str = ""
    alignment: ImageAlignment = ImageAlignment.FULL


class AboutSection(Document):
    id: str
    title: Optional[str] = None
    content: str
    order: int = 0
    images: Optional[List[AboutImage]] = None


class AboutContentUpdate(Document):
    hero_title: Optional[str] = None
    hero_subtitle: Optional[str] = None
    bio_text: Optional[str] = None
    sections: Optional[List[AboutSection]] = None


class AboutContent(Document):
    id: str
    hero_title: str = ""
    hero_subtitle: Optional[str] = None
    bio_text: str = ""
    sections: List[AboutSection] = []
    updated_at: Optional[datetime] = None


# Contact submissions
class ContactFormData(Document):
    name: str
    email: str
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: str
    inquiry_type: InquiryType = InquiryType.INQUIRY
    project_interest: Optional[str] = None
    user_agent: Optional[str] = None


class ContactSubmission(ContactFormData):
    """
    Contact submissions collection schema
    Collection name: "contact_submissions"
    """
    id: str
    read: bool = False
    archived: bool = False
    created_at: Optional[datetime] = None


class SubmissionFilters(Document):
    archived: Optional[bool] = False
    read: Optional[bool] = None


# Newsletter
class NewsletterSubscriber(Document):
    """
    Newsletter collection schema
    Collection name: "newsletter_subscribers"
    """
    id: str
    email: str
    source: SubscriptionSource
    active: bool = True
    subscribed_at: Optional[datetime] = None
    unsubscribed_at: Optional[datetime] = None


# Queries
class SortSpec(BaseModel):
    field: str
    direction: SortDirection = SortDirection.ASC


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: List[T] = []
    cursor: Optional[str] = Field(None, description="Token for the next page, None when exhausted")
