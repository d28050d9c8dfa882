from hypothesis import strategies as st

# Strategy for generating blob-safe file name stems
file_stem_strategy = st.text(
    min_size=1,
    max_size=20,
    alphabet=st.characters(
        whitelist_categories=("Lu", "Ll", "Nd"),
        blacklist_characters=["/", "\\", ".", " ", "\t", "\n", "\r"],
    ),
)

# Strategy for generating file ages in seconds, around the default rollover delay
file_age_strategy = st.integers(min_value=0, max_value=600)

# Strategy for generating one directory listing: (name, age_seconds, already_cached)
listing_strategy = st.lists(
    st.tuples(
        st.builds(lambda stem: f"{stem}.json", file_stem_strategy),
        file_age_strategy,
        st.booleans(),
    ),
    min_size=0,
    max_size=25,
    unique_by=lambda item: item[0],
)

# Strategy for generating rollover delays in seconds
rollover_delay_strategy = st.integers(min_value=0, max_value=300)

# Strategy for generating per-cycle file caps
max_files_strategy = st.integers(min_value=1, max_value=30)
