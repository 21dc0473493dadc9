"""Pure domain rules: card codes, profile handles and vCard rendering."""
