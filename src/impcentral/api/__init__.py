"""HTTP access to impCentral resources."""
