"""Common constants."""

# Human labels for the onboarding stages (timeline display, notifications)
STAGE_LABELS = {
    "OFFER_LETTER_SIGN": "Offer Letter Signing",
    "VISA_APPLYING": "Visa Application",
    "QVC_PAYMENT": "QVC Payment",
    "CONTRACT_SIGN": "Contract Signing",
    "MEDICAL_STATUS": "Medical Check",
    "FINGERPRINT": "Fingerprint",
    "VISA_PRINTING": "Visa Printing",
    "READY_TO_TRAVEL": "Ready to Travel",
    "TRAVEL_CONFIRMATION": "Travel Confirmation",
    "ARRIVAL_CONFIRMATION": "Arrival Confirmation",
    "DEPLOYED": "Deployed",
}

# Documents an agency must provide before travel can be confirmed
REQUIRED_TRAVEL_DOCUMENTS = [
    "flight_ticket",
    "medical_certificate",
    "police_clearance",
    "employment_contract",
]

ARRIVAL_CONFIRMED = "ARRIVED"

# Upload sub-directories under UPLOAD_DIR
UPLOAD_FOLDERS = {
    "signed_offer_letter": "offer-letters",
    "visa": "visas",
    "flight_ticket": "flight-tickets",
    "medical_certificate": "medical-certificates",
    "police_clearance": "police-clearances",
    "employment_contract": "employment-contracts",
    "additional": "additional-documents",
}

OFFER_LETTER_BLOCKED_MESSAGE = "Offer letter details not filled by client"
