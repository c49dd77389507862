"""Study group management backend.

Accounts, public/private study groups with join requests, group document
uploads, personal study goals and scheduled study sessions. The HTTP
layer lives in `studygroups.main`; business rules in `services`.
"""
