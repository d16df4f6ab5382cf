"""Employee Management System — auth, profile, attendance and leave service."""
