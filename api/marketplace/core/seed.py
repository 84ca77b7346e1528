"""
Fixture seeding for the marketplace catalog.
"""
import logging
from datetime import datetime, timezone

from marketplace.core.config import Settings
from marketplace.schemas.marketplace import (
    ChallengeCreate,
    ReviewCreate,
    SolutionCreate,
    UserCreate,
    UserRole,
)
from marketplace.services.auth_service import hash_password
from marketplace.storage.base import MarketplaceStorage

logger = logging.getLogger(__name__)


def _date(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


CHALLENGES = [
    {
        "id": "xtech-humanoid-2025",
        "title": "xTechHumanoid",
        "description": (
            "The U.S. Army seeks transformative humanoid technologies to enhance warfighter "
            "survivability, sustain combat power, and operate in complex environments. Focus: "
            "Prototype militarized humanoids and subsystems like AI, sensors, power systems."
        ),
        "type": "xtech",
        "status": "open",
        "phases": [
            {
                "name": "Phase 1",
                "description": "Concept White Paper",
                "requirements": "5-page paper + optional 3-5 min video",
                "prize": "$25,000 each (up to 10 winners)",
            },
            {
                "name": "Phase 2",
                "description": "Final Experimentation Event",
                "requirements": "Live demonstration",
                "prize": "Up to 2 baseline winners at $75,000 each and up to 3 subsystem winners at $30,000 each",
            },
        ],
        "prize_pool": 490000.0,
        "application_deadline": _date(2025, 10, 1),
        "finals_date": _date(2026, 8, 1),
        "eligibility_requirements": {
            "organizations": ["Nonprofit/for-profit organizations", "Large/small", "Domestic/foreign"],
            "requirements": ["Must have CAGE/NCAGE code", "Not federal/government entities"],
        },
        "focus_areas": ["AI", "Sensors", "Power Systems", "Humanoid Robotics"],
    },
    {
        "id": "xtech-search-9-2025",
        "title": "xTechSearch 9",
        "description": (
            "Open-topic competition for groundbreaking technologies with commercial traction. "
            "Focus areas include sensors, immersive/wearables, AI/ML, energy resiliency, and "
            "contested logistics. Excludes medical research areas."
        ),
        "type": "xtech",
        "status": "active",
        "phases": [
            {
                "name": "Phase 1",
                "description": "Concept White Paper",
                "requirements": "White paper on technology, Army application, team",
                "prize": "$5,000 each (up to 60 semi-finalists)",
            },
            {
                "name": "Phase 2",
                "description": "Final Pitch Event",
                "requirements": "Live pitch presentation",
                "prize": "$25,000 each (up to 24 finalists)",
            },
            {
                "name": "Phase 3",
                "description": "Phase I Army SBIR Proposal",
                "requirements": "SBIR proposal submission",
                "prize": "Phase I SBIR up to $250,000 each",
            },
        ],
        "prize_pool": 900000.0,
        "application_deadline": _date(2025, 12, 15),
        "finals_date": _date(2025, 9, 19),
        "eligibility_requirements": {
            "organizations": ["U.S. small businesses"],
            "requirements": [
                "<500 employees",
                ">50% U.S. owned/controlled by citizens/residents",
                "No duplicates with other federal funding",
            ],
        },
        "focus_areas": ["Sensors", "Immersive/Wearables", "AI/ML", "Energy Resiliency", "Contested Logistics"],
    },
]

SOLUTIONS = [
    # Mission Command
    {
        "id": "mc-001",
        "vendor_id": "vendor-001",
        "title": "AI-Powered Command Decision Support System",
        "description": (
            "Advanced artificial intelligence system that analyzes battlefield data in real-time to "
            "provide commanders with tactical recommendations, threat assessments, and resource "
            "allocation suggestions. Integrates with existing command and control systems to enhance "
            "decision-making speed and accuracy."
        ),
        "trl": 7,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Mission Command"],
        "procurements": [
            {
                "unit": "1st Armored Division",
                "contact_name": "COL Sarah Mitchell",
                "contact_email": "sarah.mitchell@army.mil",
                "contract_value": "$2.4M",
                "deployment_date": "2023-08-15",
            },
            {
                "unit": "173rd Airborne Brigade",
                "contact_name": "LTC James Rodriguez",
                "contact_email": "james.rodriguez@army.mil",
                "contract_value": "$1.8M",
                "deployment_date": "2024-01-10",
            },
        ],
        "status": "awardable",
    },
    {
        "id": "mc-002",
        "vendor_id": "vendor-002",
        "title": "Secure Tactical Communications Network",
        "description": (
            "Next-generation encrypted communication system enabling secure voice, data, and video "
            "transmission across distributed military units. Features quantum-resistant encryption "
            "and mesh networking capabilities for reliable communication in contested environments."
        ),
        "trl": 6,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Mission Command"],
        "status": "under_review",
    },
    {
        "id": "mc-007",
        "vendor_id": "vendor-007",
        "title": "Real-Time Intelligence Fusion System",
        "description": (
            "Advanced system that fuses intelligence from multiple sources (HUMINT, SIGINT, GEOINT) "
            "and presents actionable insights to commanders through intuitive dashboards and alerts."
        ),
        "trl": 8,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Mission Command", "Intelligence"],
        "status": "awardable",
    },
    # Movement and Maneuver
    {
        "id": "mm-001",
        "vendor_id": "vendor-009",
        "title": "Autonomous Ground Vehicle Squadron",
        "description": (
            "Fleet of autonomous ground vehicles capable of reconnaissance, supply transport, and "
            "tactical support operations. Features AI-driven navigation, obstacle avoidance, and "
            "mission execution capabilities."
        ),
        "trl": 6,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Movement and Maneuver"],
        "status": "awardable",
    },
    {
        "id": "mm-002",
        "vendor_id": "vendor-010",
        "title": "Enhanced Infantry Fighting Vehicle",
        "description": (
            "Next-generation infantry fighting vehicle with improved armor protection, advanced fire "
            "control systems, and integrated battlefield management capabilities. Designed for "
            "multi-domain operations."
        ),
        "trl": 8,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Movement and Maneuver", "Protection"],
        "status": "under_review",
    },
    {
        "id": "mm-007",
        "vendor_id": "vendor-015",
        "title": "Adaptive Camouflage Technology",
        "description": (
            "Advanced camouflage system that adapts to environmental conditions in real-time, "
            "providing enhanced concealment for personnel and vehicles across multiple terrains "
            "and lighting conditions."
        ),
        "trl": 4,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Movement and Maneuver", "Protection"],
        "status": "awardable",
    },
    # Intelligence
    {
        "id": "int-001",
        "vendor_id": "vendor-017",
        "title": "Multi-Spectral Reconnaissance Drone",
        "description": (
            "Advanced unmanned aerial vehicle equipped with multi-spectral imaging, SIGINT "
            "collection, and real-time data transmission capabilities for comprehensive battlefield "
            "intelligence gathering."
        ),
        "trl": 7,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Intelligence"],
        "status": "awardable",
    },
    {
        "id": "int-002",
        "vendor_id": "vendor-018",
        "title": "AI-Powered Threat Detection System",
        "description": (
            "Machine learning system that analyzes multiple intelligence streams to identify and "
            "predict potential threats, providing early warning capabilities and threat assessment "
            "reports."
        ),
        "trl": 6,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Intelligence"],
        "status": "under_review",
    },
    {
        "id": "int-008",
        "vendor_id": "vendor-024",
        "title": "Cyber Intelligence Collection System",
        "description": (
            "Specialized system for collecting and analyzing cyber intelligence, including network "
            "traffic analysis, malware detection, and cyber threat attribution capabilities."
        ),
        "trl": 7,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Intelligence", "Protection"],
        "status": "under_review",
    },
    # Fires
    {
        "id": "fir-001",
        "vendor_id": "vendor-025",
        "title": "Precision Artillery Fire Control System",
        "description": (
            "Advanced fire control system for artillery units featuring GPS-guided targeting, "
            "real-time ballistic calculations, and integration with forward observer networks for "
            "precision fires."
        ),
        "trl": 8,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Fires"],
        "status": "awardable",
    },
    {
        "id": "fir-003",
        "vendor_id": "vendor-027",
        "title": "Multi-Role Missile Defense System",
        "description": (
            "Integrated missile defense system capable of engaging multiple threat types including "
            "cruise missiles, ballistic missiles, and unmanned aerial vehicles with high probability "
            "of intercept."
        ),
        "trl": 7,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Fires", "Protection"],
        "status": "submitted",
    },
    # Sustainment
    {
        "id": "sus-001",
        "vendor_id": "vendor-033",
        "title": "Autonomous Supply Convoy System",
        "description": (
            "Fleet of autonomous vehicles for supply convoy operations, featuring AI-powered "
            "navigation, threat detection, and cargo management systems for safe and efficient "
            "logistics operations."
        ),
        "trl": 6,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Sustainment"],
        "status": "awardable",
    },
    {
        "id": "sus-002",
        "vendor_id": "vendor-034",
        "title": "Predictive Maintenance Platform",
        "description": (
            "AI-driven predictive maintenance system that analyzes equipment data to predict "
            "failures, optimize maintenance schedules, and reduce logistics burden through improved "
            "equipment reliability."
        ),
        "trl": 7,
        "nato_compatible": True,
        "security_cleared": False,
        "capability_areas": ["Sustainment"],
        "status": "under_review",
    },
    # Protection
    {
        "id": "pro-001",
        "vendor_id": "vendor-041",
        "title": "Integrated Air Defense System",
        "description": (
            "Multi-layered air defense system capable of detecting and engaging various aerial "
            "threats including aircraft, helicopters, unmanned systems, and missiles through "
            "coordinated sensor and weapon systems."
        ),
        "trl": 8,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Protection"],
        "status": "awardable",
    },
    {
        "id": "pro-008",
        "vendor_id": "vendor-048",
        "title": "Multi-Layered Counter-UAS Defense Network",
        "description": (
            "Comprehensive counter-drone system featuring radar detection, RF jamming, kinetic "
            "interceptors, and directed energy weapons. Provides 360-degree protection for critical "
            "assets and personnel."
        ),
        "trl": 7,
        "nato_compatible": True,
        "security_cleared": True,
        "capability_areas": ["Protection"],
        "status": "awardable",
    },
]

REVIEWS = [
    {
        "id": "review-001",
        "solution_id": "mc-001",
        "reviewer_id": "gov-001",
        "rating": 4,
        "title": "Excellent Decision Support Capabilities",
        "description": (
            "We deployed this system with the 1st Armored Division and saw immediate improvements "
            "in decision-making speed and accuracy. The AI recommendations proved highly valuable "
            "during training exercises, reducing tactical decision time by approximately 40%."
        ),
        "readiness_score": 8,
        "interoperability_score": 9,
        "support_score": 7,
        "field_tested": True,
        "test_date": _date(2023, 9, 15),
        "helpful_votes": 12,
        "total_votes": 14,
    },
    {
        "id": "review-002",
        "solution_id": "mc-001",
        "reviewer_id": "gov-002",
        "rating": 5,
        "title": "Game-Changing Technology for Brigade Operations",
        "description": (
            "Outstanding performance during deployment with 173rd Airborne Brigade. The system's "
            "ability to process and correlate multiple intelligence streams in real-time is "
            "impressive."
        ),
        "readiness_score": 9,
        "interoperability_score": 8,
        "support_score": 9,
        "field_tested": True,
        "test_date": _date(2024, 2, 10),
        "helpful_votes": 18,
        "total_votes": 20,
    },
    {
        "id": "review-003",
        "solution_id": "mc-002",
        "reviewer_id": "gov-003",
        "rating": 4,
        "title": "Reliable Communications in Contested Environment",
        "description": (
            "Deployed with 82nd Airborne Division during joint exercises. The quantum-resistant "
            "encryption and mesh networking capabilities performed exceptionally well in simulated "
            "contested environments."
        ),
        "readiness_score": 8,
        "interoperability_score": 7,
        "support_score": 8,
        "field_tested": True,
        "test_date": _date(2024, 4, 15),
        "helpful_votes": 9,
        "total_votes": 11,
    },
    {
        "id": "review-004",
        "solution_id": "mm-001",
        "reviewer_id": "gov-004",
        "rating": 5,
        "title": "Revolutionary Autonomous Capabilities",
        "description": (
            "The AGV squadron deployment with 3rd Infantry Division exceeded all expectations. "
            "Navigation in complex terrain, obstacle avoidance, and mission execution capabilities "
            "are truly impressive."
        ),
        "readiness_score": 9,
        "interoperability_score": 8,
        "support_score": 9,
        "field_tested": True,
        "test_date": _date(2024, 1, 20),
        "helpful_votes": 25,
        "total_votes": 27,
    },
    {
        "id": "review-005",
        "solution_id": "mm-001",
        "reviewer_id": "gov-005",
        "rating": 4,
        "title": "Solid Performance in Mountain Operations",
        "description": (
            "Deployed with 10th Mountain Division for terrain testing. Vehicles performed well in "
            "challenging mountain conditions, though some software refinements needed for extreme "
            "weather operations."
        ),
        "readiness_score": 7,
        "interoperability_score": 8,
        "support_score": 7,
        "field_tested": True,
    },
    {
        "id": "review-010",
        "solution_id": "pro-008",
        "reviewer_id": "gov-010",
        "rating": 5,
        "title": "Comprehensive Counter-Drone Protection",
        "description": (
            "Provided outstanding protection during recent joint exercises. Successfully engaged 95% "
            "of simulated drone threats across all approach vectors. Integration with existing air "
            "defense systems was seamless."
        ),
        "readiness_score": 9,
        "interoperability_score": 9,
        "support_score": 8,
        "field_tested": True,
        "test_date": _date(2024, 9, 10),
        "helpful_votes": 31,
        "total_votes": 33,
    },
]


def seed_fixture_users(storage: MarketplaceStorage) -> int:
    """Placeholder accounts that own the seeded solutions and reviews.

    They have no credentials and cannot sign in.
    """
    created = 0
    for vendor_id in sorted({s["vendor_id"] for s in SOLUTIONS}):
        if storage.get_user(vendor_id) is None:
            storage.create_user(
                UserCreate(role=UserRole.VENDOR, organization=f"Fixture vendor {vendor_id[-3:]}"),
                user_id=vendor_id,
            )
            created += 1
    for reviewer_id in sorted({r["reviewer_id"] for r in REVIEWS}):
        if storage.get_user(reviewer_id) is None:
            storage.create_user(
                UserCreate(role=UserRole.GOVERNMENT, organization="U.S. Army"),
                user_id=reviewer_id,
            )
            created += 1
    return created


def seed_challenges(storage: MarketplaceStorage) -> int:
    created = 0
    for fixture in CHALLENGES:
        data = dict(fixture)
        challenge_id = data.pop("id")
        if storage.get_challenge(challenge_id) is not None:
            continue
        storage.create_challenge(ChallengeCreate.model_validate(data), challenge_id=challenge_id)
        created += 1
    return created


def seed_solutions(storage: MarketplaceStorage) -> int:
    created = 0
    for fixture in SOLUTIONS:
        data = dict(fixture)
        solution_id = data.pop("id")
        if storage.get_solution(solution_id) is not None:
            continue
        storage.create_solution(SolutionCreate.model_validate(data), solution_id=solution_id)
        created += 1
    return created


def seed_reviews(storage: MarketplaceStorage) -> int:
    created = 0
    for fixture in REVIEWS:
        data = dict(fixture)
        review_id = data.pop("id")
        if storage.get_review(review_id) is not None:
            continue
        storage.create_review(ReviewCreate.model_validate(data), review_id=review_id)
        created += 1
    return created


def seed_default_admin(storage: MarketplaceStorage, settings: Settings) -> bool:
    """Create the default admin account when a password for it is configured."""
    if not settings.DEFAULT_ADMIN_PASSWORD:
        return False
    if storage.get_user_by_email(settings.DEFAULT_ADMIN_EMAIL) is not None:
        logger.info(f"Admin '{settings.DEFAULT_ADMIN_EMAIL}' already exists, skipping seed")
        return False

    storage.create_user(
        UserCreate(
            email=settings.DEFAULT_ADMIN_EMAIL,
            password_hash=hash_password(settings.DEFAULT_ADMIN_PASSWORD),
            first_name="Admin",
            last_name="User",
            role=UserRole.ADMIN,
            organization="G-TEAD",
        )
    )
    logger.info(f"Seeded default admin: {settings.DEFAULT_ADMIN_EMAIL}")
    return True


def run_seeds(storage: MarketplaceStorage, settings: Settings) -> None:
    """Run all fixture seeds. Records whose id already exists are skipped."""
    logger.info("Running fixture seeds...")
    users = seed_fixture_users(storage)
    challenges = seed_challenges(storage)
    solutions = seed_solutions(storage)
    reviews = seed_reviews(storage)
    seed_default_admin(storage, settings)
    logger.info(
        f"Fixture seeding complete: {users} users, {challenges} challenges, "
        f"{solutions} solutions, {reviews} reviews"
    )
