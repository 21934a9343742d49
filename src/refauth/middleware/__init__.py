"""HTTP middleware: request ids, security headers, rate limiting."""
