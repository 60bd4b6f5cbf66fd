"""
InfoRx Interpreter - Medical Text Interpretation Service

Explains prescriptions, lab results and scan summaries to patients in
plain English or Nigerian Pidgin, with optional spoken audio.

IMPORTANT: This is NOT a diagnosis tool. It must NEVER replace a doctor.
"""

__version__ = "1.0.0"
__author__ = "InfoRx Team"
