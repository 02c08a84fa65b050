"""
Company profile registry
Known business profiles plus keyword-driven dynamic profiles for unknown companies
"""

import re
from typing import Dict, List, Optional, Tuple

from models.schemas import CompanyProfile, Industry

KNOWN_PROFILES: Dict[str, CompanyProfile] = {
    "kaseya": CompanyProfile(
        name="Kaseya",
        industry="Technology",
        sector="Software",
        business_model="B2B SaaS",
        primary_services=["IT Management", "MSP Solutions", "Remote Monitoring", "Cybersecurity", "Backup Solutions"],
        target_markets=["Managed Service Providers", "IT Departments", "Small-Medium Businesses"],
        competitors=["ConnectWise", "Datto", "SolarWinds MSP", "Atera", "NinjaRMM"],
        regulatory_bodies=["SEC", "FTC", "CISA", "NIST"],
        key_risks=["Cybersecurity breaches", "Regulatory compliance", "Supply chain attacks", "Data privacy violations"],
        business_keywords=["MSP", "IT management", "remote monitoring", "cybersecurity", "backup", "automation",
                           "endpoint management"],
    ),
    "microsoft": CompanyProfile(
        name="Microsoft",
        industry="Technology",
        sector="Software & Cloud Services",
        business_model="B2B/B2C SaaS & Licensing",
        primary_services=["Cloud Computing", "Operating Systems", "Productivity Software", "Gaming", "AI Services"],
        target_markets=["Enterprise", "Government", "Education", "Consumers", "Developers"],
        competitors=["Google", "Amazon", "Apple", "Oracle", "Salesforce"],
        regulatory_bodies=["SEC", "FTC", "DOJ", "EU Commission", "GDPR"],
        key_risks=["Antitrust regulation", "Data privacy", "Cybersecurity", "Cloud outages", "AI ethics"],
        business_keywords=["cloud", "Azure", "Office 365", "Windows", "AI", "enterprise software", "productivity"],
    ),
    "jpmorgan": CompanyProfile(
        name="JPMorgan Chase",
        industry="Financial Services",
        sector="Banking",
        business_model="Traditional Banking & Investment",
        primary_services=["Commercial Banking", "Investment Banking", "Asset Management", "Credit Cards", "Mortgages"],
        target_markets=["Retail Customers", "Corporate Clients", "Institutional Investors", "Government"],
        competitors=["Bank of America", "Wells Fargo", "Goldman Sachs", "Morgan Stanley", "Citigroup"],
        regulatory_bodies=["Federal Reserve", "FDIC", "OCC", "SEC", "CFPB"],
        key_risks=["Interest rate changes", "Credit defaults", "Regulatory compliance", "Market volatility",
                   "Cybersecurity"],
        business_keywords=["banking", "loans", "credit", "investment", "trading", "wealth management",
                           "financial services"],
    ),
    "pfizer": CompanyProfile(
        name="Pfizer",
        industry="Healthcare",
        sector="Pharmaceutical",
        business_model="Drug Development & Manufacturing",
        primary_services=["Prescription Drugs", "Vaccines", "Oncology Treatments", "Rare Disease Therapies"],
        target_markets=["Healthcare Providers", "Patients", "Government Health Agencies", "International Markets"],
        competitors=["Johnson & Johnson", "Merck", "Novartis", "Roche", "AbbVie"],
        regulatory_bodies=["FDA", "EMA", "CDC", "WHO", "DEA"],
        key_risks=["Clinical trial failures", "Regulatory approval delays", "Patent expirations", "Drug safety issues"],
        business_keywords=["pharmaceutical", "drugs", "vaccines", "clinical trials", "FDA approval", "patents",
                           "healthcare"],
    ),
    "exxonmobil": CompanyProfile(
        name="ExxonMobil",
        industry="Energy",
        sector="Oil & Gas",
        business_model="Integrated Oil & Gas",
        primary_services=["Oil Exploration", "Refining", "Petrochemicals", "Natural Gas", "Renewable Energy"],
        target_markets=["Industrial Customers", "Retail Consumers", "Government", "Transportation Sector"],
        competitors=["Chevron", "Shell", "BP", "TotalEnergies", "ConocoPhillips"],
        regulatory_bodies=["EPA", "DOE", "FERC", "OSHA", "SEC"],
        key_risks=["Environmental regulations", "Oil price volatility", "Climate change policies",
                   "Operational safety"],
        business_keywords=["oil", "gas", "refining", "petrochemicals", "energy", "exploration", "environmental"],
    ),
}

# keywords -> profile fields for companies without a known profile; first match wins
DYNAMIC_PROFILE_RULES: List[Tuple[Tuple[str, ...], Dict[str, object]]] = [
    (("bank", "financial", "capital", "credit"), {
        "industry": "Financial Services",
        "sector": "Banking",
        "business_model": "Financial Services",
        "primary_services": ["Banking Services", "Financial Products", "Investment Services"],
        "regulatory_bodies": ["Federal Reserve", "FDIC", "SEC", "CFPB"],
        "key_risks": ["Regulatory compliance", "Credit risk", "Market volatility", "Cybersecurity"],
        "business_keywords": ["banking", "financial", "credit", "investment", "loans"],
    }),
    (("pharma", "bio", "health", "medical"), {
        "industry": "Healthcare",
        "sector": "Pharmaceutical",
        "business_model": "Healthcare Services",
        "primary_services": ["Healthcare Products", "Medical Services", "Pharmaceutical Development"],
        "regulatory_bodies": ["FDA", "CDC", "CMS", "DEA"],
        "key_risks": ["Regulatory approval", "Clinical trial risks", "Product liability", "Patent protection"],
        "business_keywords": ["healthcare", "medical", "pharmaceutical", "clinical", "FDA"],
    }),
    (("energy", "oil", "gas", "power"), {
        "industry": "Energy",
        "sector": "Oil & Gas",
        "business_model": "Energy Production",
        "primary_services": ["Energy Production", "Power Generation", "Energy Distribution"],
        "regulatory_bodies": ["EPA", "DOE", "FERC", "OSHA"],
        "key_risks": ["Environmental regulations", "Safety incidents", "Price volatility", "Climate policies"],
        "business_keywords": ["energy", "oil", "gas", "power", "environmental"],
    }),
    (("retail", "consumer", "store"), {
        "industry": "Retail",
        "sector": "Consumer Goods",
        "business_model": "Retail Sales",
        "primary_services": ["Retail Sales", "Consumer Products", "E-commerce"],
        "regulatory_bodies": ["FTC", "CPSC", "FDA", "OSHA"],
        "key_risks": ["Consumer safety", "Supply chain disruption", "Market competition", "Regulatory compliance"],
        "business_keywords": ["retail", "consumer", "sales", "products", "commerce"],
    }),
]

DEFAULT_DYNAMIC_PROFILE: Dict[str, object] = {
    "industry": "Technology",
    "sector": "Software",
    "business_model": "B2B Services",
    "primary_services": ["Technology Solutions", "Software Development", "IT Services"],
    "regulatory_bodies": ["FTC", "SEC", "NIST", "CISA"],
    "key_risks": ["Cybersecurity threats", "Data privacy", "Technology disruption", "Regulatory compliance"],
    "business_keywords": ["technology", "software", "IT", "digital", "innovation"],
}

DYNAMIC_TARGET_MARKETS = ["Business Customers", "Enterprise Clients", "Government"]
DYNAMIC_COMPETITORS = ["Industry Competitor A", "Industry Competitor B", "Industry Competitor C"]

# Profile display industry -> classifier industry
PROFILE_INDUSTRY_KEYS: Dict[str, Industry] = {
    "technology": Industry.TECHNOLOGY,
    "financial services": Industry.FINANCIAL,
    "healthcare": Industry.HEALTHCARE,
    "energy": Industry.ENERGY,
    "retail": Industry.RETAIL,
}


def normalize_company_key(company_name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", (company_name or "").lower())


def find_known_profile(company_name: str) -> Optional[CompanyProfile]:
    """Exact key match first, then containment either way"""
    key = normalize_company_key(company_name)
    if not key:
        return None

    if key in KNOWN_PROFILES:
        return KNOWN_PROFILES[key]

    for profile_key, profile in KNOWN_PROFILES.items():
        if profile_key in key or key in profile_key:
            return profile
    return None


def build_dynamic_profile(company_name: str) -> CompanyProfile:
    lowered = company_name.lower()
    fields = DEFAULT_DYNAMIC_PROFILE
    for keywords, rule_fields in DYNAMIC_PROFILE_RULES:
        if any(keyword in lowered for keyword in keywords):
            fields = rule_fields
            break

    return CompanyProfile(
        name=company_name,
        target_markets=list(DYNAMIC_TARGET_MARKETS),
        competitors=list(DYNAMIC_COMPETITORS),
        **fields,
    )


def get_company_profile(company_name: str) -> CompanyProfile:
    return find_known_profile(company_name) or build_dynamic_profile(company_name)


def profile_industry(profile: CompanyProfile) -> Industry:
    return PROFILE_INDUSTRY_KEYS.get(profile.industry.lower(), Industry.TECHNOLOGY)


__all__ = [
    'KNOWN_PROFILES', 'normalize_company_key', 'find_known_profile',
    'build_dynamic_profile', 'get_company_profile', 'profile_industry',
]
