# utils/mask.py

def mask_email(addr: str | None) -> str:
    if not addr:
        return ""
    try:
        local, domain = addr.split("@", 1)
    except ValueError:
        return addr[:1] + "***"
    local_mask = local[0] + "***" if len(local) > 1 else "*"
    # keep domain TLD visible
    dot = domain.rfind(".")
    if dot > 0:
        dom_mask = domain[0] + "***" + domain[dot:]
    elif domain:
        dom_mask = domain[0] + "***"
    else:
        dom_mask = "***"
    return f"{local_mask}@{dom_mask}"
