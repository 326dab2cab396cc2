"""Command-line front end for the DeGiro proxy."""
