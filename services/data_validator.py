"""
Data validation for attendee registration
"""
from typing import Dict, Any

from utils.helpers import clean_text


class ValidationError(Exception):
    """Raised when data validation fails"""
    pass


class DataValidator:
    """Validates registration payloads before they are stored"""

    REQUIRED_MEMBER_FIELDS = ['name', 'org', 'role', 'industry', 'city']
    OPTIONAL_MEMBER_FIELDS = ['rev_driver', 'current_constraint', 'assets', 'needs', 'fun_fact', 'email']

    @staticmethod
    def validate_member_data(data: dict) -> bool:
        """
        Validate a registration payload

        Args:
            data: Dict of member fields

        Raises:
            ValidationError: If a required field is missing or consent is not a boolean

        Returns:
            True if valid
        """
        if not isinstance(data, dict):
            raise ValidationError("Registration data must be a dict")

        for field in DataValidator.REQUIRED_MEMBER_FIELDS:
            if not clean_text(data.get(field)):
                raise ValidationError(f"Missing required field: {field}")

        if 'consent' in data and not isinstance(data['consent'], bool):
            raise ValidationError(f"Consent must be true or false, got: {data['consent']!r}")

        return True

    @staticmethod
    def clean_member_data(data: dict) -> Dict[str, Any]:
        """
        Keep only known member fields, stripped

        Returns:
            Dict ready for insertion; blank optional fields become None
        """
        cleaned = {}
        for field in DataValidator.REQUIRED_MEMBER_FIELDS:
            cleaned[field] = clean_text(data.get(field))
        for field in DataValidator.OPTIONAL_MEMBER_FIELDS:
            value = clean_text(data.get(field))
            cleaned[field] = value or None
        cleaned['consent'] = data.get('consent', True)
        return cleaned
