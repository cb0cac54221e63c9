def is_domain_local(domain: str) -> bool:
    domain_tld = domain.split(".")[-1].split(":")[0]
    return (
        domain.startswith("localhost")
        or domain.startswith("127.0.0.1")
        or domain_tld == "local"
        or domain_tld == "internal"
    )


def lnurlp_callback_url(base_url: str, username: str) -> str:
    return f"{base_url.rstrip('/')}/.well-known/lnurlp/{username}"
