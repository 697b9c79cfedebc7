"""
Static assessment taxonomy: six pillars, their key practices and the aspect
families behind expandable practices.

The module-level definitions are immutable. ``build_pillars`` and
``build_aspects`` hand out fresh mutable copies with default ratings, which is
how page state is reset when the project/date context changes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .keys import SEPARATOR
from .models import Aspect, Pillar, Practice

PILLAR_TITLES: tuple[str, ...] = ("People", "Strategy", "Data", "Legal", "Solution", "Security")

MIN_PRACTICES_PER_PILLAR = 3
MAX_PRACTICES_PER_PILLAR = 10
MIN_ASPECTS_PER_FAMILY = 5
MAX_ASPECTS_PER_FAMILY = 10


@dataclass(frozen=True, slots=True)
class AspectDefinition:
    name: str
    description: str


@dataclass(frozen=True, slots=True)
class PracticeDefinition:
    name: str
    aspects: tuple[AspectDefinition, ...] = ()
    aspect_prefix: str | None = None  # defaults to the practice name for expandable practices

    @property
    def has_aspects(self) -> bool:
        return bool(self.aspects)

    @property
    def prefix(self) -> str | None:
        if not self.aspects:
            return None
        return self.aspect_prefix or self.name

    @property
    def slug(self) -> str | None:
        if not self.aspects:
            return None
        return slugify(self.name)

    def aspect(self, name: str) -> AspectDefinition | None:
        for aspect in self.aspects:
            if aspect.name == name:
                return aspect
        return None


@dataclass(frozen=True, slots=True)
class PillarDefinition:
    title: str
    description: str
    color: str
    practices: tuple[PracticeDefinition, ...]

    def practice(self, name: str) -> PracticeDefinition | None:
        for practice in self.practices:
            if practice.name == name:
                return practice
        return None


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _aspects(*pairs: tuple[str, str]) -> tuple[AspectDefinition, ...]:
    return tuple(AspectDefinition(name, description) for name, description in pairs)


TRAINING_ASPECTS = _aspects(
    ("Employee AI Literacy", "Level of understanding and ability to work alongside AI technologies."),
    ("Training Programs", "Availability and effectiveness of AI training and upskilling programs."),
    ("AI Adoption Rate", "Employees are encouraged to and are adopting and utilizing AI solutions."),
    ("Continuous Learning", "Opportunities for continuous learning and upskilling in AI."),
    ("Performance Metrics", "Metrics to measure the effectiveness of training programs."),
    ("Certification Levels", "Attainment of certifications in relevant AI domains."),
    ("Expertise Availability", "Access to in-house or external AI experts for guidance."),
)

CHANGE_MANAGEMENT_ASPECTS = _aspects(
    (
        "Change Strategy",
        "Clearly defined and communicated change management strategy for AI transformation.",
    ),
    ("Employee Engagement", "Level of employee engagement during AI-driven changes."),
    (
        "Communication Channels",
        "Effective communication channels for addressing concerns and sharing progress.",
    ),
    ("Change Metrics", "Metrics to evaluate the success of change management initiatives."),
    ("Resistance Management", "Strategies to manage resistance to new AI technologies."),
    (
        "Support Structures",
        "Availability of support structures to assist employees during the transition.",
    ),
    ("Change Network", "Establishing a network of change advocates within the organization."),
)

COLLABORATION_ASPECTS = _aspects(
    ("Interdisciplinary Teams", "Existence and effectiveness of cross-functional teams."),
    (
        "External Partnerships",
        "Relationships with external AI consultants, vendors, and academic institutions.",
    ),
    ("Collaboration Tools", "Availability and utilization of collaboration tools."),
    (
        "Knowledge Sharing",
        "Platforms and practices for sharing AI knowledge across the organization.",
    ),
    ("Project Management", "Effectiveness in managing AI projects across different teams."),
    ("Innovation Culture", "Encouragement and support for innovative ideas and experimentation."),
    (
        "Feedback Loops",
        "Mechanisms for collecting and acting on feedback from various stakeholders.",
    ),
)

BUSINESS_ALIGNMENT_ASPECTS = _aspects(
    ("Business Objectives", "Clear definition of how AI aligns with overall business objectives."),
    ("Value Proposition", "Demonstrated value provided by Generative AI solutions."),
    ("ROI Measurement", "Metrics and methods for measuring ROI of AI initiatives."),
    ("Alignment Meetings", "Regular alignment meetings between AI teams and business stakeholders."),
    ("Use Case Identification", "Effective processes for identifying and prioritizing AI use cases."),
    ("AI Roadmap", "A well-defined roadmap detailing AI implementation phases."),
    ("Stakeholder Buy-in", "Level of support from key stakeholders across the organization."),
)

INNOVATION_ASPECTS = _aspects(
    ("Innovation Labs", "Existence and utilization of innovation labs for testing AI solutions."),
    ("Agile Methodology", "Adoption of agile methodologies in AI development cycles."),
    ("Proof of Concept (POC) Processes", "Structured processes for developing and evaluating POCs."),
    ("Risk Tolerance", "Willingness to invest in innovative but risky AI projects."),
    ("Idea Generation", "Processes for generating and evaluating new AI ideas."),
    ("Experimentation Culture", "Encouragement of experimentation and learning from failures."),
    ("Scalability Assessments", "Processes to assess the scalability of innovative solutions."),
)

DATA_ACQUISITION_ASPECTS = _aspects(
    ("Data Collection", "Data needed is sourced and available."),
    ("Data Quality Metrics", "Confirm the data is trustworthy to use."),
    ("Data Validation", "Processes for validating and cleaning data."),
    ("Data Annotation", "Tools and processes for annotating data, if necessary."),
    ("Data Updates and Relevance", "Regular updates to ensure data relevance to solutions."),
    ("Data Structure", "Structured and labeling requirements or use of unstructured data."),
    ("Source Diversity", "Variety in data sources to ensure comprehensive data collection."),
)

DATA_GOVERNANCE_ASPECTS = _aspects(
    (
        "Governance Framework",
        "Established data governance framework with clear policies and procedures.",
    ),
    ("Data Ownership", "Defined data ownership and stewardship roles."),
    (
        "Metadata Management",
        "Effective metadata management for data discoverability and understanding.",
    ),
    ("Data Quality Management", "Processes to ensure and enhance data quality."),
    (
        "Data Lifecycle Management",
        "Managing data throughout its lifecycle from collection to deletion.",
    ),
    ("Data Governance Tools", "Tools to enforce data governance policies."),
    ("Compliance Monitoring", "Monitoring and ensuring compliance with data governance policies."),
)

DATA_PRIVACY_ASPECTS = _aspects(
    ("Privacy Policies", "Established and communicated data privacy policies."),
    ("Privacy Measures", "Categorize levels of data privacy."),
    (
        "Compliance with Laws",
        "Compliance with data protection laws and regulations (e.g., GDPR, CCPA).",
    ),
    ("Data Encryption", "Encryption of sensitive data both in transit and at rest."),
    ("Access Controls", "Role-based access controls to restrict data access."),
    ("Privacy Auditing", "Test for or scan potential privacy issues in your data."),
    (
        "Incident Response",
        "Effective incident response plans for data breaches compromising privacy.",
    ),
)

COMPLIANCE_REGULATION_ASPECTS = _aspects(
    ("Regulatory Awareness", "Staying updated on local and global AI regulations."),
    (
        "Compliance Monitoring",
        "Processes to ensure AI solutions are compliant with relevant regulations.",
    ),
    ("Legal Support", "Access to legal support for AI compliance and regulation issues."),
    ("Documentation", "Proper documentation for AI systems to demonstrate compliance."),
    (
        "Regulatory Engagement",
        "Engaging with regulatory bodies and participating in industry groups.",
    ),
    ("Audit Trails", "Maintaining audit trails for critical AI decisions and actions."),
    (
        "Reporting Mechanisms",
        "Effective reporting mechanisms to report compliance status to stakeholders.",
    ),
)

ETHICAL_CONSIDERATIONS_ASPECTS = _aspects(
    ("Ethics Guidelines", "Defined and communicated AI ethics guidelines."),
    (
        "Ethics Board",
        "An established board to review and approve AI projects for ethical considerations.",
    ),
    ("Ethical Training", "Training on AI ethics for relevant stakeholders."),
    ("Ethical Audits", "Regular audits to ensure AI solutions adhere to ethical guidelines."),
    ("Bias Mitigation", "Processes to identify and mitigate unintentional biases in AI systems."),
    (
        "Transparency",
        "Transparency to stakeholders on how AI systems operate and make decisions.",
    ),
    ("Public Engagement", "Engagement with the public or external experts on AI ethics."),
)

INTELLECTUAL_PROPERTY_ASPECTS = _aspects(
    ("IP Policies", "Clearly defined policies regarding AI-generated content and data."),
    ("Contract Clarity", "Clear contracts regarding IP ownership with third-party vendors."),
    ("IP Protection", "Mechanisms for protecting AI-generated IP."),
    ("Licensing Agreements", "Proper licensing agreements for AI technologies and datasets."),
    ("Legal Review", "Regular legal review of IP issues related to AI."),
    ("IP Education", "Training on IP considerations for relevant stakeholders."),
    ("IP Compliance", "Monitoring and ensuring compliance with IP policies and laws."),
)

MODEL_DEVELOPMENT_ASPECTS = _aspects(
    ("Development Tools", "Availability and usability of tools for model development."),
    ("Model Validation", "Robust processes for model validation and testing."),
    ("Hyperparameter Tuning", "Efficient hyperparameter tuning to optimize model performance."),
    ("Experiment Tracking", "Tools and processes for tracking model development experiments."),
    ("Version Control", "Version control systems for models and training datasets."),
    ("Resource Monitoring", "Monitoring resources during model training."),
    ("Training Data", "Adequacy and relevance of training data."),
)

DEPLOYMENT_MONITORING_ASPECTS = _aspects(
    ("MLOps Processes", "Established MLOps processes for model deployment and monitoring."),
    ("Deployment Automation", "Automated processes for deploying models to production."),
    ("Performance Monitoring", "Continuous monitoring of model performance in production."),
    ("Feedback Loops", "Feedback loops for continuous model improvement."),
    ("Model Updating", "Processes for updating models with new data or parameters."),
    ("Model Explainability", "Explainability of AI models to stakeholders."),
    (
        "Deployment Documentation",
        "Documentation covering model deployment and operational procedures.",
    ),
)

INFRASTRUCTURE_ASPECTS = _aspects(
    ("Scalable Infrastructure", "Infrastructure that can scale with growing AI needs."),
    ("Performance Monitoring", "Tools and processes to monitor infrastructure performance."),
    ("Resource Allocation", "Adequate allocation of resources (e.g., computing, storage)."),
    ("Cost Management", "Monitoring and managing infrastructure costs."),
    ("Cloud Adoption", "Leveraging cloud resources for better scalability and performance."),
    ("Security Measures", "Security measures to protect infrastructure."),
    ("Disaster Recovery", "Effective disaster recovery and backup solutions."),
)


# Aspect prefixes follow the keys already present in stored data.
PILLARS: tuple[PillarDefinition, ...] = (
    PillarDefinition(
        title="People",
        description="Team expertise and AI literacy",
        color="#FF6B6B",
        practices=(
            PracticeDefinition("Training and Upskilling", TRAINING_ASPECTS, "Training"),
            PracticeDefinition("Change Management", CHANGE_MANAGEMENT_ASPECTS, "ChangeManagement"),
            PracticeDefinition("Collaboration", COLLABORATION_ASPECTS),
        ),
    ),
    PillarDefinition(
        title="Strategy",
        description="AI implementation and business alignment",
        color="#4ECDC4",
        practices=(
            PracticeDefinition(
                "Business Alignment", BUSINESS_ALIGNMENT_ASPECTS, "BusinessAlignment"
            ),
            PracticeDefinition("Innovation Framework", INNOVATION_ASPECTS, "Innovation"),
            PracticeDefinition("Scalability"),
        ),
    ),
    PillarDefinition(
        title="Data",
        description="Data quality and management practices",
        color="#45B7D1",
        practices=(
            PracticeDefinition(
                "Data Acquisition and Quality", DATA_ACQUISITION_ASPECTS, "Data Acquisition"
            ),
            PracticeDefinition("Data Governance", DATA_GOVERNANCE_ASPECTS, "DataGovernance"),
            PracticeDefinition("Data Privacy", DATA_PRIVACY_ASPECTS, "DataPrivacy"),
        ),
    ),
    PillarDefinition(
        title="Legal",
        description="Compliance and regulatory adherence",
        color="#96CEB4",
        practices=(
            PracticeDefinition(
                "Compliance and Regulation", COMPLIANCE_REGULATION_ASPECTS, "ComplianceRegulation"
            ),
            PracticeDefinition(
                "Ethical Considerations", ETHICAL_CONSIDERATIONS_ASPECTS, "EthicalConsiderations"
            ),
            PracticeDefinition(
                "Intellectual Property", INTELLECTUAL_PROPERTY_ASPECTS, "IntellectualProperty"
            ),
        ),
    ),
    PillarDefinition(
        title="Solution",
        description="AI system effectiveness and reliability",
        color="#FFEEAD",
        practices=(
            PracticeDefinition(
                "Model Development and Training", MODEL_DEVELOPMENT_ASPECTS, "ModelDevelopment"
            ),
            PracticeDefinition(
                "Deployment and Monitoring", DEPLOYMENT_MONITORING_ASPECTS, "DeploymentMonitoring"
            ),
            PracticeDefinition("Infrastructure", INFRASTRUCTURE_ASPECTS),
        ),
    ),
    PillarDefinition(
        title="Security",
        description="System security and risk management",
        color="#D4A5A5",
        practices=(
            PracticeDefinition("Security Governance"),
            PracticeDefinition("Threat Management"),
            PracticeDefinition("Access Management"),
            PracticeDefinition("Incident Response"),
        ),
    ),
)


class TaxonomyValidationError(ValueError):
    """Raised when a taxonomy definition breaks a structural rule."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("; ".join(problems))


def validate_taxonomy(pillars: tuple[PillarDefinition, ...] = PILLARS) -> None:
    """
    Check the structural rules every taxonomy must satisfy.

    - exactly the six known pillar titles, each once
    - 3..10 practices per pillar, unique names within the pillar
    - expandable practices have 5..10 aspects with unique, colon-free names
    - aspect prefixes are unique within a pillar and colon-free
    - slugs are unique across the taxonomy

    Raises:
        TaxonomyValidationError: listing every problem found
    """
    problems: list[str] = []

    titles = [p.title for p in pillars]
    if sorted(titles) != sorted(PILLAR_TITLES):
        problems.append(f"Pillar titles must be exactly {list(PILLAR_TITLES)}, got {titles}")

    seen_slugs: dict[str, str] = {}
    for pillar in pillars:
        count = len(pillar.practices)
        if not MIN_PRACTICES_PER_PILLAR <= count <= MAX_PRACTICES_PER_PILLAR:
            problems.append(
                f"{pillar.title}: expected {MIN_PRACTICES_PER_PILLAR}-"
                f"{MAX_PRACTICES_PER_PILLAR} practices, got {count}"
            )

        practice_names = [p.name for p in pillar.practices]
        if len(set(practice_names)) != len(practice_names):
            problems.append(f"{pillar.title}: duplicate practice names")

        prefixes: set[str] = set()
        for practice in pillar.practices:
            if SEPARATOR in practice.name:
                problems.append(f"{pillar.title}/{practice.name}: practice name contains ':'")
            if not practice.has_aspects:
                continue

            prefix = practice.prefix or ""
            if SEPARATOR in prefix:
                problems.append(f"{pillar.title}/{practice.name}: aspect prefix contains ':'")
            if prefix in prefixes:
                problems.append(f"{pillar.title}: aspect prefix {prefix!r} used twice")
            prefixes.add(prefix)

            slug = practice.slug or ""
            if slug in seen_slugs:
                problems.append(f"Slug {slug!r} shared by {seen_slugs[slug]} and {practice.name}")
            seen_slugs[slug] = practice.name

            n_aspects = len(practice.aspects)
            if not MIN_ASPECTS_PER_FAMILY <= n_aspects <= MAX_ASPECTS_PER_FAMILY:
                problems.append(
                    f"{pillar.title}/{practice.name}: expected {MIN_ASPECTS_PER_FAMILY}-"
                    f"{MAX_ASPECTS_PER_FAMILY} aspects, got {n_aspects}"
                )
            aspect_names = [a.name for a in practice.aspects]
            if len(set(aspect_names)) != len(aspect_names):
                problems.append(f"{pillar.title}/{practice.name}: duplicate aspect names")
            for name in aspect_names:
                if not name.strip():
                    problems.append(f"{pillar.title}/{practice.name}: blank aspect name")
                if SEPARATOR in name:
                    problems.append(f"{pillar.title}/{practice.name}: aspect {name!r} contains ':'")

    if problems:
        raise TaxonomyValidationError(problems)


def get_pillar(title: str) -> PillarDefinition | None:
    for pillar in PILLARS:
        if pillar.title == title:
            return pillar
    return None


def find_practice_by_slug(slug: str) -> tuple[PillarDefinition, PracticeDefinition] | None:
    for pillar in PILLARS:
        for practice in pillar.practices:
            if practice.slug == slug:
                return pillar, practice
    return None


def iter_aspect_families() -> list[tuple[PillarDefinition, PracticeDefinition]]:
    return [(pillar, practice) for pillar in PILLARS for practice in pillar.practices if practice.has_aspects]


def build_aspects(practice: PracticeDefinition) -> list[Aspect]:
    return [Aspect(name=a.name, description=a.description, rating=None, findings="") for a in practice.aspects]


def build_pillars() -> list[Pillar]:
    return [
        Pillar(
            title=pillar.title,
            description=pillar.description,
            color=pillar.color,
            key_practices=[
                Practice(name=p.name, aspect_prefix=p.prefix, slug=p.slug) for p in pillar.practices
            ],
        )
        for pillar in PILLARS
    ]


validate_taxonomy()
