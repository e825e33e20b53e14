"""Copy for each wizard step.

`title` and `template` are shown as-is when the LLM is unavailable; `ask`
tells the LLM what the step is about so it can phrase a friendlier prompt.
"""

STEP_COPY: dict[str, dict[str, str]] = {
    "contract_duration": {
        "title": "Contract duration",
        "ask": "how many months they want the rental contract to last",
        "template": "Choose the contract length that best fits your plans.",
    },
    "occupancy_date": {
        "title": "Move-in date",
        "ask": "the date they want to move in",
        "template": "When would you like to move in?",
    },
    "occupation_type": {
        "title": "Your occupation",
        "ask": "whether they are a professional, an entrepreneur or a student",
        "template": "Pick the option that best describes your current situation.",
    },
    "contact_info": {
        "title": "Contact information",
        "ask": "a phone number so the host can reach them about the application",
        "template": "We need your phone number to process your rental application.",
    },
    "university_info": {
        "title": "University information",
        "ask": "which university they attend and their university email",
        "template": "Tell us which university you attend and your university email.",
    },
    "payment_responsible": {
        "title": "Who pays the rent",
        "ask": "whether they will pay the rent themselves or a guardian will",
        "template": "Who will make the monthly payments?",
    },
    "income_source": {
        "title": "Income source",
        "ask": "where their income comes from",
        "template": "Briefly describe where your income comes from.",
    },
    "guardian_info": {
        "title": "Guardian information",
        "ask": "the guardian's name, phone, email and relationship",
        "template": "Share the details of the person who will make the payments.",
    },
    "work_info": {
        "title": "Work information",
        "ask": "their company, start date, role and work email",
        "template": "Tell us about your current job.",
    },
    "business_info": {
        "title": "Business information",
        "ask": "their business name, what it does and its website or social media",
        "template": "Tell us about your business.",
    },
    "income": {
        "title": "Income",
        "ask": "a monthly income range and up to 3 proofs of income (bank statements or payslips)",
        "template": "Choose your monthly income range and upload up to 3 proofs of income.",
    },
    "guardian_income": {
        "title": "Guardian income",
        "ask": "the guardian's monthly income range and up to 3 proofs of income",
        "template": "Choose the guardian's monthly income range and upload up to 3 proofs of income.",
    },
    "kyc": {
        "title": "Identity documents",
        "ask": "a government ID and a short video selfie, then a quick identity check",
        "template": "Upload your ID and a video selfie, then verify your identity.",
    },
    "identity_verification": {
        "title": "Identity verification",
        "ask": "a quick identity check with their ID and a video selfie",
        "template": "Please verify your identity with your ID and a video selfie.",
    },
    "guardian_verification": {
        "title": "Guardian identity verification",
        "ask": "the guardian to verify their identity first",
        "template": "First, the guardian responsible for payments needs to verify their identity.",
    },
}


def copy_for(kind: str) -> dict[str, str]:
    return STEP_COPY.get(kind, {"title": kind.replace("_", " ").title(), "ask": kind, "template": ""})
